"""Bounded roll history.

Entries are immutable snapshots, stored most-recent-first. Once a store holds
``capacity`` entries, each insert evicts the oldest one.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from collections import OrderedDict, deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dicebox.dice import DiceLine, PoolRoll, RollResult
from dicebox.notation import describe_line, describe_pool

HISTORY_CAPACITY = 1000
WIDGET_HISTORY_CAPACITY = 20
MAX_SESSIONS = 1000

logger = logging.getLogger(__name__)


class RollType(str, enum.Enum):
    """What a committed roll was for."""

    normal = "normal"
    advantage = "advantage"
    disadvantage = "disadvantage"
    exploding = "exploding"
    spell_damage = "spell_damage"
    healing = "healing"
    attack = "attack"
    skill_check = "skill_check"
    saving_throw = "saving_throw"
    custom = "custom"


DAMAGE_ROLL_TYPES = frozenset({RollType.attack, RollType.spell_damage})


def _new_entry_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RollHistoryEntry:
    """A committed roll. Never mutated after creation."""

    label: str
    dice_configuration: str
    individual_rolls: tuple[int, ...]
    final_result: int
    modifier: int = 0
    roll_type: RollType = RollType.normal
    notes: str = ""
    # Die type of the roll, or None when unknown (e.g. mixed pools).
    dice_sides: int | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=_new_entry_id)


def default_roll_type(line: DiceLine) -> RollType:
    if line.advantage:
        return RollType.advantage
    if line.disadvantage:
        return RollType.disadvantage
    if line.exploding:
        return RollType.exploding
    return RollType.normal


def entry_from_line(
    line: DiceLine, *, roll_type: RollType | None = None, notes: str = ""
) -> RollHistoryEntry:
    """Snapshot a rolled line as a history entry.

    Raises:
        ValueError: If the line has not been rolled.
    """
    result: RollResult | None = line.result
    if result is None:
        raise ValueError(f"Line {line.label!r} has not been rolled")
    return RollHistoryEntry(
        label=line.label,
        dice_configuration=describe_line(line),
        individual_rolls=result.individual_rolls,
        final_result=result.total,
        modifier=result.modifier,
        roll_type=roll_type or default_roll_type(line),
        notes=notes,
        dice_sides=line.dice_sides,
        timestamp=result.timestamp,
    )


def entry_from_pool(
    pool: PoolRoll,
    *,
    label: str = "Dice Pool",
    roll_type: RollType | None = None,
    notes: str = "",
) -> RollHistoryEntry:
    """Snapshot a face-keyed pool roll as a single history entry.

    ``dice_sides`` is only recorded when every face uses the same die.
    """
    sides = {entry.sides for entry in pool.breakdown}
    return RollHistoryEntry(
        label=label,
        dice_configuration=describe_pool(pool),
        individual_rolls=tuple(face for entry in pool.breakdown for face in entry.rolls),
        final_result=pool.total,
        modifier=pool.bonus - pool.penalty,
        roll_type=roll_type or RollType.normal,
        notes=notes,
        dice_sides=sides.pop() if len(sides) == 1 else None,
    )


class HistoryStore:
    """Most-recent-first ring buffer of RollHistoryEntry values."""

    def __init__(self, capacity: int = HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be positive: {capacity}")
        self.capacity = capacity
        self._entries: deque[RollHistoryEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, entry: RollHistoryEntry) -> None:
        with self._lock:
            self._entries.appendleft(entry)

    def add_line(
        self, line: DiceLine, *, roll_type: RollType | None = None, notes: str = ""
    ) -> RollHistoryEntry:
        """Commit a rolled line and return the stored entry."""
        entry = entry_from_line(line, roll_type=roll_type, notes=notes)
        self.add(entry)
        return entry

    def list(self) -> list[RollHistoryEntry]:
        """Return a snapshot of the entries, most recent first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RollHistoryEntry]:
        return iter(self.list())


class HistoryRegistry:
    """One HistoryStore per session key.

    Keeps unrelated sessions from writing into the same history. At most
    ``max_sessions`` stores are kept; creating one more evicts the session
    that was used least recently.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY, max_sessions: int = MAX_SESSIONS) -> None:
        if max_sessions < 1:
            raise ValueError(f"Session limit must be positive: {max_sessions}")
        self.capacity = capacity
        self.max_sessions = max_sessions
        self._stores: OrderedDict[str, HistoryStore] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_key: str) -> HistoryStore:
        """Return the store for session_key, creating it on first use."""
        with self._lock:
            store = self._stores.get(session_key)
            if store is not None:
                self._stores.move_to_end(session_key)
                return store
            store = self._stores[session_key] = HistoryStore(self.capacity)
            if len(self._stores) > self.max_sessions:
                evicted, _ = self._stores.popitem(last=False)
                logger.info("Evicted roll history for idle session %s", evicted)
            return store

    def find(self, session_key: str) -> HistoryStore | None:
        """Return the store for session_key without creating one."""
        with self._lock:
            store = self._stores.get(session_key)
            if store is not None:
                self._stores.move_to_end(session_key)
            return store

    def drop(self, session_key: str) -> None:
        with self._lock:
            self._stores.pop(session_key, None)

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._stores

    def __len__(self) -> int:
        return len(self._stores)
