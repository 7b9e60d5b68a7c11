"""Predefined roll configurations.

Every function returns fresh DiceLines, so callers can roll and edit them
without touching shared state.
"""

from __future__ import annotations

from collections.abc import Callable

from dicebox.dice import D4, D6, D8, D20, DiceLine, RollMode
from dicebox.history import RollType

PresetFactory = Callable[[], list[DiceLine]]


def attack_roll() -> list[DiceLine]:
    return [DiceLine(label="Attack Roll", dice_count=1, dice_sides=D20.sides)]


def death_save() -> list[DiceLine]:
    return [DiceLine(label="Death Save", dice_count=1, dice_sides=D20.sides)]


def longsword_damage() -> list[DiceLine]:
    return [DiceLine(label="Damage (Longsword)", dice_count=1, dice_sides=D8.sides)]


def sneak_attack(level: int = 1) -> list[DiceLine]:
    """Sneak attack adds 1d6 per two rogue levels, rounded up."""
    dice = max(1, (level + 1) // 2)
    return [DiceLine(label=f"Sneak Attack (Level {level})", dice_count=dice, dice_sides=D6.sides)]


def ability_score() -> list[DiceLine]:
    """4d6, dropping the lowest die."""
    return [DiceLine(label="Ability Score", dice_count=4, dice_sides=D6.sides, keep_highest=3)]


def magic_missile(level: int = 1) -> list[DiceLine]:
    """One dart per die; each dart deals 1d4+1, so the modifier matches the dart count."""
    darts = level + 2
    return [
        DiceLine(
            label=f"Magic Missile (Level {level})",
            dice_count=darts,
            dice_sides=D4.sides,
            modifier=darts,
        )
    ]


def fireball(level: int = 3) -> list[DiceLine]:
    """8d6 at third level, plus 1d6 for each slot level above third."""
    dice = 8 + max(0, level - 3)
    return [DiceLine(label=f"Fireball (Level {level})", dice_count=dice, dice_sides=D6.sides)]


def healing_word(level: int = 1) -> list[DiceLine]:
    return [DiceLine(label=f"Healing Word (Level {level})", dice_count=level, dice_sides=D4.sides)]


def advantage_check() -> list[DiceLine]:
    return [DiceLine(label="Check (Advantage)", roll_mode=RollMode.advantage)]


# name -> (factory, roll type recorded in history)
PRESETS: dict[str, tuple[PresetFactory, RollType]] = {
    "attack_roll": (attack_roll, RollType.attack),
    "death_save": (death_save, RollType.saving_throw),
    "longsword_damage": (longsword_damage, RollType.attack),
    "sneak_attack": (sneak_attack, RollType.attack),
    "ability_score": (ability_score, RollType.custom),
    "magic_missile": (magic_missile, RollType.spell_damage),
    "fireball": (fireball, RollType.spell_damage),
    "healing_word": (healing_word, RollType.healing),
    "advantage_check": (advantage_check, RollType.skill_check),
}


def build_preset(name: str) -> tuple[list[DiceLine], RollType]:
    """Return fresh lines and the history roll type for a named preset.

    Raises:
        KeyError: If no preset has that name.
    """
    factory, roll_type = PRESETS[name]
    return factory(), roll_type
