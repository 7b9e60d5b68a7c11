"""Explicitly constructed dice engine.

A DiceEngine bundles a RandomSource with the roll limits so callers never
reach for a module-level random generator. Web requests get their own engine
through ``dicebox.dependencies.get_engine``.
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping

from dicebox.dice import (
    EXPLODE_CAP,
    MAX_DICE_PER_ROLL,
    DiceLine,
    DiceSpec,
    PoolRoll,
    RandomSource,
    RollResult,
    check_dice_total,
    combine,
    roll_line,
    roll_pool,
)
from dicebox.notation import parse


class DiceEngine:
    """Parses and rolls dice against a single RandomSource."""

    def __init__(
        self,
        rng: RandomSource | None = None,
        *,
        explode_cap: int = EXPLODE_CAP,
        max_dice: int = MAX_DICE_PER_ROLL,
        strict: bool = False,
    ) -> None:
        self.rng: RandomSource = rng if rng is not None else random.Random()
        self.explode_cap = explode_cap
        self.max_dice = max_dice
        self.strict = strict

    def parse(self, expression: str, *, strict: bool | None = None) -> list[DiceLine]:
        return parse(
            expression,
            strict=self.strict if strict is None else strict,
            max_dice=self.max_dice,
        )

    def roll(self, line: DiceLine) -> RollResult:
        """Roll a line, attach the result to it, and return the result."""
        line.result = roll_line(line, self.rng, explode_cap=self.explode_cap)
        return line.result

    def roll_lines(self, lines: Iterable[DiceLine]) -> int:
        """Roll every line in place and return the combined total."""
        lines = list(lines)
        check_dice_total(lines, self.max_dice)
        for line in lines:
            self.roll(line)
        return combine(lines)

    def roll_expression(
        self, expression: str, *, strict: bool | None = None
    ) -> tuple[list[DiceLine], int]:
        """Parse and roll an expression; return the rolled lines and combined total."""
        lines = self.parse(expression, strict=strict)
        return lines, self.roll_lines(lines)

    def roll_pool(
        self, dice: Mapping[str, DiceSpec | int], *, bonus: int = 0, penalty: int = 0
    ) -> PoolRoll:
        return roll_pool(dice, self.rng, bonus=bonus, penalty=penalty, max_dice=self.max_dice)
