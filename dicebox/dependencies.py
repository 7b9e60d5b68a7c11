"""FastAPI dependencies for Dicebox."""

from __future__ import annotations

import random

from fastapi import Depends, Path
from starlette.requests import Request

from dicebox.config import settings
from dicebox.dice import RandomSource
from dicebox.engine import DiceEngine
from dicebox.history import HistoryRegistry, RollHistoryEntry
from dicebox.schemas import SESSION_KEY_PATTERN


def get_rng() -> RandomSource:
    """Return a fresh random source for the current request."""
    return random.Random()


def get_engine(rng: RandomSource = Depends(get_rng)) -> DiceEngine:
    return DiceEngine(
        rng,
        explode_cap=settings.explode_cap,
        max_dice=settings.max_dice_per_roll,
        strict=settings.strict_parsing,
    )


def get_history_registry(request: Request) -> HistoryRegistry:
    return request.app.state.history


def get_widget_registry(request: Request) -> HistoryRegistry:
    return request.app.state.widget_history


def get_session_entries(
    session_key: str = Path(min_length=1, max_length=100, pattern=SESSION_KEY_PATTERN),
    registry: HistoryRegistry = Depends(get_history_registry),
) -> list[RollHistoryEntry]:
    """Return the entries of the session named in the path, most recent first.

    An unknown session reads as empty and is not registered.
    """
    store = registry.find(session_key)
    return store.list() if store is not None else []
