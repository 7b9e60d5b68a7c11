"""Pydantic request and response models for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from dicebox.dice import (
    MAX_DICE,
    MAX_SIDES,
    MIN_DICE,
    MIN_SIDES,
    DiceLine,
    DiceSpec,
    Operation,
    RollResult,
    roll_mode_from_flags,
)
from dicebox.history import RollType
from dicebox.notation import format_line
from dicebox.stats import SessionSummary

SESSION_KEY_PATTERN = r"^[A-Za-z0-9_.-]+$"

# ---------------------------------------------------------------------------
# Face-keyed pool rolls
# ---------------------------------------------------------------------------


class DiceSpecIn(BaseModel):
    count: int = Field(ge=MIN_DICE, le=MAX_DICE)
    sides: int = Field(ge=MIN_SIDES, le=MAX_SIDES)

    def to_spec(self) -> DiceSpec:
        return DiceSpec(sides=self.sides, count=self.count)


class PoolModifiers(BaseModel):
    bonus: int = Field(default=0, ge=0)
    penalty: int = Field(default=0, ge=0)


class PoolRollRequest(BaseModel):
    dice: dict[str, DiceSpecIn | int] = Field(
        description="Face key to {count, sides}, or to a bare count when the key is 'dN'.",
    )
    modifiers: PoolModifiers | None = None
    label: str = Field(default="Dice Pool", max_length=200)
    session_key: str | None = Field(default=None, max_length=100, pattern=SESSION_KEY_PATTERN)
    roll_type: RollType | None = None
    notes: str = Field(default="", max_length=1000)

    def to_pool(self) -> dict[str, DiceSpec | int]:
        return {
            face: value.to_spec() if isinstance(value, DiceSpecIn) else value
            for face, value in self.dice.items()
        }


class PoolBreakdownOut(BaseModel):
    face: str
    count: int
    sides: int
    rolls: list[int]
    subtotal: int

    model_config = {"from_attributes": True}


class PoolRollResponse(BaseModel):
    results: dict[str, list[int]]
    total: int
    bonus: int
    penalty: int
    breakdown: list[PoolBreakdownOut]
    dice_configuration: str
    committed: bool = False

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Dice lines
# ---------------------------------------------------------------------------


class RollResultOut(BaseModel):
    individual_rolls: list[int]
    kept_rolls: list[int]
    total: int
    modifier: int
    advantage: bool
    disadvantage: bool
    exploding: bool
    critical_success: bool
    critical_failure: bool
    explosion_capped: bool
    timestamp: datetime

    model_config = {"from_attributes": True}


class DiceLineIn(BaseModel):
    label: str = Field(default="Roll 1", max_length=200)
    dice_count: int = Field(default=1, ge=MIN_DICE, le=MAX_DICE)
    dice_sides: int = Field(default=20, ge=MIN_SIDES, le=MAX_SIDES)
    modifier: int = 0
    advantage: bool = False
    disadvantage: bool = False
    exploding: bool = False
    operation: Operation = Operation.add
    keep_highest: int | None = Field(default=None, ge=1)
    keep_lowest: int | None = Field(default=None, ge=1)

    def to_line(self) -> DiceLine:
        """Build a DiceLine.

        Raises:
            IncompatibleModifiers: If both advantage and disadvantage are set.
        """
        return DiceLine(
            label=self.label,
            dice_count=self.dice_count,
            dice_sides=self.dice_sides,
            modifier=self.modifier,
            roll_mode=roll_mode_from_flags(self.advantage, self.disadvantage),
            exploding=self.exploding,
            operation=self.operation,
            keep_highest=self.keep_highest,
            keep_lowest=self.keep_lowest,
        )


class DiceLineOut(BaseModel):
    id: str
    label: str
    notation: str
    dice_count: int
    dice_sides: int
    modifier: int
    advantage: bool
    disadvantage: bool
    exploding: bool
    operation: Operation
    keep_highest: int | None = None
    keep_lowest: int | None = None
    result: RollResultOut | None = None

    @classmethod
    def from_line(cls, line: DiceLine) -> DiceLineOut:
        result: RollResult | None = line.result
        return cls(
            id=line.id,
            label=line.label,
            notation=format_line(line),
            dice_count=line.dice_count,
            dice_sides=line.dice_sides,
            modifier=line.modifier,
            advantage=line.advantage,
            disadvantage=line.disadvantage,
            exploding=line.exploding,
            operation=line.operation,
            keep_highest=line.keep_highest,
            keep_lowest=line.keep_lowest,
            result=RollResultOut.model_validate(result) if result is not None else None,
        )


class ParseRequest(BaseModel):
    expression: str = Field(min_length=1, max_length=500)
    strict: bool | None = None


class ParseResponse(BaseModel):
    expression: str
    lines: list[DiceLineOut]


class RollExpressionRequest(BaseModel):
    expression: str = Field(min_length=1, max_length=500)
    strict: bool | None = None
    session_key: str | None = Field(default=None, max_length=100, pattern=SESSION_KEY_PATTERN)
    roll_type: RollType | None = None
    notes: str = Field(default="", max_length=1000)


class RollLinesRequest(BaseModel):
    lines: list[DiceLineIn] = Field(min_length=1)
    session_key: str | None = Field(default=None, max_length=100, pattern=SESSION_KEY_PATTERN)
    roll_type: RollType | None = None
    notes: str = Field(default="", max_length=1000)


class CommitOptions(BaseModel):
    session_key: str | None = Field(default=None, max_length=100, pattern=SESSION_KEY_PATTERN)
    notes: str = Field(default="", max_length=1000)


class RollLinesResponse(BaseModel):
    expression: str
    lines: list[DiceLineOut]
    total: int
    committed: int = 0


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


class DiceTypeOut(BaseModel):
    sides: int
    label: str

    model_config = {"from_attributes": True}


class PresetOut(BaseModel):
    name: str
    roll_type: RollType
    lines: list[DiceLineOut]


# ---------------------------------------------------------------------------
# History and statistics
# ---------------------------------------------------------------------------


class HistoryEntryOut(BaseModel):
    id: str
    timestamp: datetime
    label: str
    dice_configuration: str
    individual_rolls: list[int]
    final_result: int
    modifier: int
    roll_type: RollType
    notes: str
    dice_sides: int | None = None

    model_config = {"from_attributes": True}


class CampaignStatsOut(BaseModel):
    total_rolls: int
    natural_twenties: int
    natural_ones: int
    average_d20_roll: float
    highest_roll: int
    lowest_roll: int
    total_damage: int
    dice_type_counts: dict[str, int]
    most_used_dice_type: str | None = None

    model_config = {"from_attributes": True}


class SessionSummaryOut(BaseModel):
    roll_count: int
    highest_roll: int
    lowest_roll: int
    average_roll: float
    critical_hits: int
    critical_fails: int
    total_damage: int
    session_duration_seconds: float

    @classmethod
    def from_summary(cls, summary: SessionSummary) -> SessionSummaryOut:
        return cls(
            roll_count=summary.roll_count,
            highest_roll=summary.highest_roll,
            lowest_roll=summary.lowest_roll,
            average_roll=summary.average_roll,
            critical_hits=summary.critical_hits,
            critical_fails=summary.critical_fails,
            total_damage=summary.total_damage,
            session_duration_seconds=summary.session_duration.total_seconds(),
        )


class SaveHistoryResponse(BaseModel):
    saved: int
    skipped: int


class SavedRollOut(HistoryEntryOut):
    session_key: str
    saved_at: datetime
