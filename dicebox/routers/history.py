"""Session history routes: listing, statistics, export and saved rolls."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dicebox.config import settings
from dicebox.database import get_db
from dicebox.dependencies import get_history_registry, get_session_entries, get_widget_registry
from dicebox.export import export_history_text
from dicebox.history import HistoryRegistry, RollHistoryEntry
from dicebox.models import SavedRoll
from dicebox.schemas import (
    SESSION_KEY_PATTERN,
    CampaignStatsOut,
    HistoryEntryOut,
    SavedRollOut,
    SaveHistoryResponse,
    SessionSummaryOut,
)
from dicebox.stats import compute_campaign_stats, compute_session_summary

router = APIRouter(prefix="/api/sessions/{session_key}")

logger = logging.getLogger(__name__)

SessionEntries = Annotated[list[RollHistoryEntry], Depends(get_session_entries)]
SessionKey = Annotated[str, Path(min_length=1, max_length=100, pattern=SESSION_KEY_PATTERN)]


@router.get("/history")
async def list_history(
    entries: SessionEntries,
    limit: int | None = Query(default=None, ge=1),
) -> list[HistoryEntryOut]:
    """Return the session's committed rolls, most recent first."""
    if limit is not None:
        entries = entries[:limit]
    return [HistoryEntryOut.model_validate(e) for e in entries]


@router.get("/recent")
async def recent_rolls(
    session_key: SessionKey,
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> list[HistoryEntryOut]:
    """Return the short widget feed for the session."""
    feed = widget.find(session_key)
    if feed is None:
        return []
    return [HistoryEntryOut.model_validate(e) for e in feed.list()]


@router.delete("/history", status_code=204)
async def clear_history(
    session_key: SessionKey,
    history: HistoryRegistry = Depends(get_history_registry),
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> None:
    history.drop(session_key)
    widget.drop(session_key)
    logger.info("Cleared roll history for session %s", session_key)


@router.get("/stats")
async def campaign_stats(entries: SessionEntries) -> CampaignStatsOut:
    return CampaignStatsOut.model_validate(compute_campaign_stats(entries))


@router.get("/summary")
async def session_summary(
    entries: SessionEntries,
    window_hours: float = Query(default=settings.session_window_hours, gt=0, le=24 * 30),
) -> SessionSummaryOut:
    """Summarize the rolls made within the trailing window."""
    summary = compute_session_summary(entries, timedelta(hours=window_hours))
    return SessionSummaryOut.from_summary(summary)


@router.get("/export", response_class=PlainTextResponse)
async def export_history(entries: SessionEntries) -> PlainTextResponse:
    """Download the session history as a plain-text report."""
    return PlainTextResponse(export_history_text(entries))


@router.post("/save")
async def save_history(
    session_key: SessionKey,
    entries: SessionEntries,
    db: AsyncSession = Depends(get_db),
) -> SaveHistoryResponse:
    """Persist the session's in-memory history. Already saved entries are skipped."""
    result = await db.execute(
        select(SavedRoll.entry_id).where(SavedRoll.entry_id.in_([e.id for e in entries]))
    )
    already_saved = set(result.scalars().all())
    new_entries = [e for e in entries if e.id not in already_saved]
    for entry in reversed(new_entries):
        db.add(SavedRoll.from_entry(session_key, entry))
    await db.commit()
    logger.info("Saved %d roll(s) for session %s", len(new_entries), session_key)
    return SaveHistoryResponse(saved=len(new_entries), skipped=len(already_saved))


@router.get("/saved")
async def list_saved(
    session_key: SessionKey,
    db: AsyncSession = Depends(get_db),
) -> list[SavedRollOut]:
    """Return persisted rolls for the session, most recent first."""
    result = await db.execute(
        select(SavedRoll)
        .where(SavedRoll.session_key == session_key)
        .order_by(SavedRoll.rolled_at.desc(), SavedRoll.id.desc())
    )
    return [
        SavedRollOut(
            **HistoryEntryOut.model_validate(saved.to_entry()).model_dump(),
            session_key=saved.session_key,
            saved_at=saved.saved_at,
        )
        for saved in result.scalars().all()
    ]
