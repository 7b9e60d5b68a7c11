"""Core dice model and rolling rules.

Supports standard rolls (XdY+Z), exploding dice, advantage/disadvantage on a
single die, and keep-highest/keep-lowest pools (4d6k3, 4d6kl1).

Rolling consumes entropy only from the ``RandomSource`` passed in, so every
function here is deterministic under a scripted source.
"""

from __future__ import annotations

import enum
import logging
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_SIDES = 2
MAX_SIDES = 1000
MIN_DICE = 1
MAX_DICE = 100
MAX_DICE_PER_ROLL = 200

# Extra dice allowed per original die when exploding. A chain that reaches the
# cap stops there and the result is flagged with explosion_capped.
EXPLODE_CAP = 100

_FACE_KEY_RE = re.compile(r"^d(?P<sides>\d+)$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class DiceError(ValueError):
    """Base class for every dice notation or roll configuration error."""

    kind = "dice_error"


class InvalidNotation(DiceError):
    """Raised when an expression contains no usable dice term."""

    kind = "invalid_notation"


class OutOfRangeDice(DiceError):
    """Raised when sides, count or the per-roll dice total is out of bounds."""

    kind = "out_of_range_dice"


class IncompatibleModifiers(DiceError):
    """Raised when roll modifiers cannot be combined on one line."""

    kind = "incompatible_modifiers"


# ---------------------------------------------------------------------------
# Random source
# ---------------------------------------------------------------------------


class RandomSource(Protocol):
    """Anything that returns a uniform integer in [a, b], e.g. random.Random."""

    def randint(self, a: int, b: int) -> int: ...


def roll_die(sides: int, rng: RandomSource) -> int:
    """Roll one die with the given number of sides."""
    return rng.randint(1, sides)


# ---------------------------------------------------------------------------
# Dice types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiceType:
    """One of the standard polyhedral dice."""

    sides: int
    label: str


D4 = DiceType(4, "d4")
D6 = DiceType(6, "d6")
D8 = DiceType(8, "d8")
D10 = DiceType(10, "d10")
D12 = DiceType(12, "d12")
D20 = DiceType(20, "d20")
D100 = DiceType(100, "d100")

STANDARD_DICE: tuple[DiceType, ...] = (D4, D6, D8, D10, D12, D20, D100)

_DICE_BY_SIDES: dict[int, DiceType] = {d.sides: d for d in STANDARD_DICE}


def dice_type_for(sides: int) -> DiceType | None:
    """Return the standard die with this many sides, or None for custom dice."""
    return _DICE_BY_SIDES.get(sides)


# ---------------------------------------------------------------------------
# Parsed expression components
# ---------------------------------------------------------------------------


def check_dice_bounds(count: int, sides: int) -> None:
    """Raise OutOfRangeDice unless count and sides are within the supported range."""
    if not MIN_SIDES <= sides <= MAX_SIDES:
        raise OutOfRangeDice(f"Die sides must be between {MIN_SIDES} and {MAX_SIDES}: d{sides}")
    if not MIN_DICE <= count <= MAX_DICE:
        raise OutOfRangeDice(f"Dice count must be between {MIN_DICE} and {MAX_DICE}: {count}")


@dataclass(frozen=True)
class DiceSpec:
    """A single kind of die and how many to throw."""

    sides: int
    count: int = 1

    def __post_init__(self) -> None:
        check_dice_bounds(self.count, self.sides)


@dataclass(frozen=True)
class FlatModifier:
    """A standalone numeric bonus or penalty."""

    value: int
    sign: int = 1

    @property
    def signed_value(self) -> int:
        return self.sign * self.value


@dataclass(frozen=True)
class DiceTerm:
    """One signed dice group of a parsed expression."""

    spec: DiceSpec
    sign: int = 1
    keep_highest: int | None = None
    keep_lowest: int | None = None
    exploding: bool = False

    def __post_init__(self) -> None:
        check_keep(self.spec.count, self.keep_highest, self.keep_lowest)


def check_keep(count: int, keep_highest: int | None, keep_lowest: int | None) -> None:
    """Validate keep-highest/keep-lowest against the number of dice rolled."""
    if keep_highest is not None and keep_lowest is not None:
        raise IncompatibleModifiers("Keep-highest and keep-lowest cannot both be set")
    keep = keep_highest if keep_highest is not None else keep_lowest
    if keep is None:
        return
    if count == 1:
        raise IncompatibleModifiers("Keep requires more than one die")
    if not 1 <= keep <= count:
        raise OutOfRangeDice(f"Cannot keep {keep} of {count} dice")


# ---------------------------------------------------------------------------
# Dice lines and results
# ---------------------------------------------------------------------------


class Operation(str, enum.Enum):
    """How a line contributes to the combined total."""

    add = "add"
    subtract = "subtract"

    @property
    def sign(self) -> int:
        return -1 if self is Operation.subtract else 1


class RollMode(str, enum.Enum):
    """Single-die roll mode."""

    normal = "normal"
    advantage = "advantage"
    disadvantage = "disadvantage"


@dataclass(frozen=True)
class RollResult:
    """Outcome of rolling one DiceLine.

    ``individual_rolls`` holds every die thrown (both candidates for
    advantage/disadvantage, every die of an exploding chain). ``kept_rolls``
    holds the dice that count toward the total, so
    ``total == sum(kept_rolls) + modifier`` always holds.
    """

    individual_rolls: tuple[int, ...]
    kept_rolls: tuple[int, ...]
    total: int
    modifier: int = 0
    advantage: bool = False
    disadvantage: bool = False
    exploding: bool = False
    critical_success: bool = False
    critical_failure: bool = False
    explosion_capped: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def dice_total(self) -> int:
        return sum(self.kept_rolls)


def _new_line_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(eq=False)
class DiceLine:
    """A named, user-editable roll configuration.

    Advantage and disadvantage are exposed as properties over ``roll_mode`` so
    that setting one always clears the other.
    """

    label: str = "Roll 1"
    dice_count: int = 1
    dice_sides: int = 20
    modifier: int = 0
    roll_mode: RollMode = RollMode.normal
    exploding: bool = False
    operation: Operation = Operation.add
    keep_highest: int | None = None
    keep_lowest: int | None = None
    result: RollResult | None = None
    id: str = field(default_factory=_new_line_id)

    @property
    def advantage(self) -> bool:
        return self.roll_mode is RollMode.advantage

    @advantage.setter
    def advantage(self, value: bool) -> None:
        if value:
            self.roll_mode = RollMode.advantage
        elif self.roll_mode is RollMode.advantage:
            self.roll_mode = RollMode.normal

    @property
    def disadvantage(self) -> bool:
        return self.roll_mode is RollMode.disadvantage

    @disadvantage.setter
    def disadvantage(self, value: bool) -> None:
        if value:
            self.roll_mode = RollMode.disadvantage
        elif self.roll_mode is RollMode.disadvantage:
            self.roll_mode = RollMode.normal

    @property
    def dice_type(self) -> DiceType | None:
        return dice_type_for(self.dice_sides)


def roll_mode_from_flags(advantage: bool, disadvantage: bool) -> RollMode:
    """Translate a pair of advantage/disadvantage flags into a RollMode."""
    if advantage and disadvantage:
        raise IncompatibleModifiers("Advantage and disadvantage cannot both be requested")
    if advantage:
        return RollMode.advantage
    if disadvantage:
        return RollMode.disadvantage
    return RollMode.normal


def check_line(line: DiceLine) -> None:
    """Raise a DiceError if the line cannot be rolled as configured."""
    check_dice_bounds(line.dice_count, line.dice_sides)
    check_keep(line.dice_count, line.keep_highest, line.keep_lowest)
    if line.roll_mode is RollMode.normal:
        return
    if line.dice_count != 1:
        raise IncompatibleModifiers(
            f"{line.roll_mode.value.capitalize()} requires exactly one die, got {line.dice_count}"
        )
    if line.exploding:
        raise IncompatibleModifiers(f"Exploding dice cannot be rolled with {line.roll_mode.value}")


def check_dice_total(lines: Iterable[DiceLine], max_dice: int = MAX_DICE_PER_ROLL) -> None:
    """Raise OutOfRangeDice when the lines throw more than max_dice dice in total."""
    total = sum(line.dice_count for line in lines)
    if total > max_dice:
        raise OutOfRangeDice(f"Too many dice in one roll: {total} (max {max_dice})")


# ---------------------------------------------------------------------------
# Rolling
# ---------------------------------------------------------------------------


def _roll_exploding(sides: int, rng: RandomSource, cap: int) -> tuple[list[int], bool]:
    """Roll one die, adding a die for every maximum face up to cap extra dice."""
    chain = [roll_die(sides, rng)]
    while chain[-1] == sides:
        if len(chain) > cap:
            return chain, True
        chain.append(roll_die(sides, rng))
    return chain, False


def _keep(rolls: list[int], keep_highest: int | None, keep_lowest: int | None) -> list[int]:
    if keep_highest is not None:
        return sorted(rolls, reverse=True)[:keep_highest]
    if keep_lowest is not None:
        return sorted(rolls)[:keep_lowest]
    return list(rolls)


def roll_line(line: DiceLine, rng: RandomSource, *, explode_cap: int = EXPLODE_CAP) -> RollResult:
    """Roll a DiceLine and return its result without attaching it.

    Args:
        line: The configuration to roll.
        rng: Source of uniform integers.
        explode_cap: Maximum extra dice per original die when exploding.

    Returns:
        A RollResult whose total is the kept dice plus the line modifier.

    Raises:
        DiceError: If the line's configuration is invalid. This indicates a
            caller bug, since parsed and validated lines are always rollable.
    """
    check_line(line)
    sides = line.dice_sides
    capped = False

    if line.roll_mode is not RollMode.normal:
        first = roll_die(sides, rng)
        second = roll_die(sides, rng)
        selected = max(first, second) if line.advantage else min(first, second)
        rolls = [first, second]
        kept = [selected]
    else:
        rolls = []
        for _ in range(line.dice_count):
            if line.exploding:
                chain, hit_cap = _roll_exploding(sides, rng, explode_cap)
                rolls.extend(chain)
                capped = capped or hit_cap
            else:
                rolls.append(roll_die(sides, rng))
        kept = _keep(rolls, line.keep_highest, line.keep_lowest)

    if capped:
        logger.info("Exploding chain for %s reached the cap of %d extra dice", line.label, explode_cap)

    is_d20 = sides == 20
    return RollResult(
        individual_rolls=tuple(rolls),
        kept_rolls=tuple(kept),
        total=sum(kept) + line.modifier,
        modifier=line.modifier,
        advantage=line.advantage,
        disadvantage=line.disadvantage,
        exploding=line.exploding,
        critical_success=is_d20 and 20 in rolls,
        critical_failure=is_d20 and 1 in rolls,
        explosion_capped=capped,
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def signed_total(line: DiceLine) -> int:
    """Return a rolled line's contribution to the combined total.

    The dice are negated for subtract lines and the modifier is added once:
    ``sign * sum(kept_rolls) + modifier``.
    """
    if line.result is None:
        return 0
    return line.operation.sign * line.result.dice_total + line.result.modifier


def combine(lines: Iterable[DiceLine]) -> int:
    """Sum the signed totals of every rolled line, floored at zero."""
    total = sum(signed_total(line) for line in lines if line.result is not None)
    return max(0, total)


# ---------------------------------------------------------------------------
# Face-keyed dice pools
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolEntry:
    face: str
    count: int
    sides: int
    rolls: tuple[int, ...]

    @property
    def subtotal(self) -> int:
        return sum(self.rolls)


@dataclass(frozen=True)
class PoolRoll:
    """Result of rolling a face-keyed pool such as {"d6": 2, "d20": 1}."""

    breakdown: tuple[PoolEntry, ...]
    bonus: int = 0
    penalty: int = 0

    @property
    def results(self) -> dict[str, list[int]]:
        return {entry.face: list(entry.rolls) for entry in self.breakdown}

    @property
    def total(self) -> int:
        return sum(entry.subtotal for entry in self.breakdown) + self.bonus - self.penalty


def resolve_face(face: str, value: DiceSpec | int) -> DiceSpec:
    """Return the DiceSpec for a pool entry, inferring sides from a dN face key."""
    if isinstance(value, DiceSpec):
        return value
    m = _FACE_KEY_RE.match(face.strip())
    if not m:
        raise InvalidNotation(f"Cannot infer die sides from face key {face!r}")
    return DiceSpec(sides=int(m.group("sides")), count=value)


def roll_pool(
    dice: Mapping[str, DiceSpec | int],
    rng: RandomSource,
    *,
    bonus: int = 0,
    penalty: int = 0,
    max_dice: int = MAX_DICE_PER_ROLL,
) -> PoolRoll:
    """Roll every entry of a face-keyed pool.

    Args:
        dice: Face key to either a DiceSpec or a bare count (sides from the key).
        rng: Source of uniform integers.
        bonus: Flat amount added to the total.
        penalty: Flat amount subtracted from the total.
        max_dice: Upper bound on dice thrown across all entries.

    Raises:
        DiceError: If the pool is empty, a face cannot be resolved, or bounds
            are exceeded.
    """
    if not dice:
        raise InvalidNotation("No dice requested")
    specs = {face: resolve_face(face, value) for face, value in dice.items()}
    requested = sum(spec.count for spec in specs.values())
    if requested > max_dice:
        raise OutOfRangeDice(f"Too many dice in one roll: {requested} (max {max_dice})")

    breakdown = tuple(
        PoolEntry(
            face=face,
            count=spec.count,
            sides=spec.sides,
            rolls=tuple(roll_die(spec.sides, rng) for _ in range(spec.count)),
        )
        for face, spec in specs.items()
    )
    return PoolRoll(breakdown=breakdown, bonus=bonus, penalty=penalty)
