"""Plain-text history export."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from dicebox.history import RollHistoryEntry
from dicebox.stats import CampaignStats, compute_campaign_stats

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_env = Environment(
    loader=FileSystemLoader(Path(__file__).parent / "templates"),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    keep_trailing_newline=True,
)
_env.filters["timestamp"] = lambda value: value.strftime(TIMESTAMP_FORMAT)


def export_history_text(
    history: Iterable[RollHistoryEntry],
    stats: CampaignStats | None = None,
    *,
    generated_at: datetime | None = None,
) -> str:
    """Render campaign statistics followed by the entries, oldest first.

    Args:
        history: Entries in store order (most recent first) or any order.
        stats: Precomputed statistics; computed from history when omitted.
        generated_at: Report timestamp; defaults to now (UTC).
    """
    entries = sorted(history, key=lambda e: e.timestamp)
    if stats is None:
        stats = compute_campaign_stats(entries)
    return _env.get_template("history_export.txt").render(
        entries=entries,
        stats=stats,
        generated_at=generated_at or datetime.now(timezone.utc),
    )
