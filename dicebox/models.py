"""SQLAlchemy ORM models for saved roll history.

Session history lives in memory. Entries are only written here when a
session explicitly saves its history.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dicebox.database import Base
from dicebox.history import RollHistoryEntry, RollType


class SavedRoll(Base):
    """A persisted copy of one RollHistoryEntry."""

    __tablename__ = "saved_rolls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    session_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    dice_configuration: Mapped[str] = mapped_column(String(100), nullable=False)
    dice_sides: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rolls_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    final_result: Mapped[int] = mapped_column(Integer, nullable=False)
    modifier: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    roll_type: Mapped[RollType] = mapped_column(
        Enum(RollType, native_enum=False), nullable=False, default=RollType.normal
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def individual_rolls(self) -> list[int]:
        """Return the rolled faces, deserializing from JSON."""
        return json.loads(self.rolls_json)

    @individual_rolls.setter
    def individual_rolls(self, value: list[int]) -> None:
        self.rolls_json = json.dumps(list(value))

    @classmethod
    def from_entry(cls, session_key: str, entry: RollHistoryEntry) -> SavedRoll:
        saved = cls(
            entry_id=entry.id,
            session_key=session_key,
            label=entry.label,
            dice_configuration=entry.dice_configuration,
            dice_sides=entry.dice_sides,
            final_result=entry.final_result,
            modifier=entry.modifier,
            roll_type=entry.roll_type,
            notes=entry.notes,
            rolled_at=entry.timestamp,
        )
        saved.individual_rolls = list(entry.individual_rolls)
        return saved

    def to_entry(self) -> RollHistoryEntry:
        rolled_at = self.rolled_at
        if rolled_at.tzinfo is None:
            # SQLite drops the offset; stored values are always UTC.
            rolled_at = rolled_at.replace(tzinfo=timezone.utc)
        return RollHistoryEntry(
            id=self.entry_id,
            label=self.label,
            dice_configuration=self.dice_configuration,
            individual_rolls=tuple(self.individual_rolls),
            final_result=self.final_result,
            modifier=self.modifier,
            roll_type=self.roll_type,
            notes=self.notes,
            dice_sides=self.dice_sides,
            timestamp=rolled_at,
        )
