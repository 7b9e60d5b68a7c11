"""Statistics derived from roll history.

Nothing here keeps state: every view is recomputed from the entries passed in.

A natural 20 or natural 1 only counts for d20 rolls. Entries carry the die
type in ``dice_sides``; entries without it fall back to looking for a d20
token in the recorded configuration string.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from dicebox.history import DAMAGE_ROLL_TYPES, RollHistoryEntry

DEFAULT_SESSION_WINDOW = timedelta(hours=6)

_D20_RE = re.compile(r"d20(?!\d)")
_DIE_RE = re.compile(r"d(\d+)")


@dataclass(frozen=True)
class CampaignStats:
    total_rolls: int = 0
    natural_twenties: int = 0
    natural_ones: int = 0
    average_d20_roll: float = 0.0
    highest_roll: int = 0
    lowest_roll: int = 0
    total_damage: int = 0
    # die label ("d20") -> number of entries that rolled it
    dice_type_counts: dict[str, int] = field(default_factory=dict)
    most_used_dice_type: str | None = None


@dataclass(frozen=True)
class SessionSummary:
    roll_count: int = 0
    highest_roll: int = 0
    lowest_roll: int = 0
    average_roll: float = 0.0
    critical_hits: int = 0
    critical_fails: int = 0
    total_damage: int = 0
    session_duration: timedelta = timedelta(0)


def is_d20_entry(entry: RollHistoryEntry) -> bool:
    if entry.dice_sides is not None:
        return entry.dice_sides == 20
    return _D20_RE.search(entry.dice_configuration) is not None


def dice_types(entry: RollHistoryEntry) -> list[str]:
    """Return the distinct die labels an entry rolled, in configuration order."""
    if entry.dice_sides is not None:
        return [f"d{entry.dice_sides}"]
    labels = [f"d{sides}" for sides in _DIE_RE.findall(entry.dice_configuration)]
    return list(dict.fromkeys(labels))


def is_natural_twenty(entry: RollHistoryEntry) -> bool:
    return is_d20_entry(entry) and 20 in entry.individual_rolls


def is_natural_one(entry: RollHistoryEntry) -> bool:
    return is_d20_entry(entry) and 1 in entry.individual_rolls


def _damage(entries: Iterable[RollHistoryEntry]) -> int:
    return sum(e.final_result for e in entries if e.roll_type in DAMAGE_ROLL_TYPES)


def compute_campaign_stats(history: Iterable[RollHistoryEntry]) -> CampaignStats:
    """Compute campaign-wide statistics.

    ``average_d20_roll`` is the mean of individual d20 faces, not of totals.
    ``dice_type_counts`` counts each entry once per distinct die it rolled; ties
    for ``most_used_dice_type`` go to the die seen first.
    """
    entries = list(history)
    if not entries:
        return CampaignStats()
    d20_faces = [
        face for e in entries if is_d20_entry(e) for face in e.individual_rolls if face <= 20
    ]
    counts = Counter(label for e in entries for label in dice_types(e))
    return CampaignStats(
        total_rolls=len(entries),
        natural_twenties=sum(1 for e in entries if is_natural_twenty(e)),
        natural_ones=sum(1 for e in entries if is_natural_one(e)),
        average_d20_roll=sum(d20_faces) / len(d20_faces) if d20_faces else 0.0,
        highest_roll=max(e.final_result for e in entries),
        lowest_roll=min(e.final_result for e in entries),
        total_damage=_damage(entries),
        dice_type_counts=dict(counts),
        most_used_dice_type=counts.most_common(1)[0][0] if counts else None,
    )


def compute_session_summary(
    history: Iterable[RollHistoryEntry],
    window: timedelta = DEFAULT_SESSION_WINDOW,
    *,
    now: datetime | None = None,
) -> SessionSummary:
    """Summarize the entries that fall within ``window`` before ``now``.

    Args:
        history: Entries in any order.
        window: Trailing duration that counts as the current session.
        now: Reference time; defaults to the current UTC time.
    """
    now = now or datetime.now(timezone.utc)
    start = now - window
    entries = [e for e in history if e.timestamp > start]
    if not entries:
        return SessionSummary()
    results = [e.final_result for e in entries]
    timestamps = [e.timestamp for e in entries]
    return SessionSummary(
        roll_count=len(entries),
        highest_roll=max(results),
        lowest_roll=min(results),
        average_roll=sum(results) / len(results),
        critical_hits=sum(1 for e in entries if is_natural_twenty(e)),
        critical_fails=sum(1 for e in entries if is_natural_one(e)),
        total_damage=_damage(entries),
        session_duration=max(timestamps) - min(timestamps),
    )
