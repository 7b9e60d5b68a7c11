"""Roll routes: dice pools, expressions, dice lines and presets."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from dicebox.dependencies import get_engine, get_history_registry, get_widget_registry
from dicebox.dice import STANDARD_DICE, DiceLine
from dicebox.engine import DiceEngine
from dicebox.history import (
    HistoryRegistry,
    RollHistoryEntry,
    RollType,
    entry_from_line,
    entry_from_pool,
)
from dicebox.notation import format_expression
from dicebox.presets import PRESETS, build_preset
from dicebox.schemas import (
    CommitOptions,
    DiceLineOut,
    DiceTypeOut,
    ParseRequest,
    ParseResponse,
    PoolBreakdownOut,
    PoolRollRequest,
    PoolRollResponse,
    PresetOut,
    RollExpressionRequest,
    RollLinesRequest,
    RollLinesResponse,
)

router = APIRouter(prefix="/api")

logger = logging.getLogger(__name__)


def _record(
    history: HistoryRegistry,
    widget: HistoryRegistry,
    session_key: str | None,
    entries: list[RollHistoryEntry],
) -> int:
    """Record entries in the session's history and widget feed."""
    if session_key is None:
        return 0
    store = history.get(session_key)
    feed = widget.get(session_key)
    for entry in entries:
        store.add(entry)
        feed.add(entry)
    logger.info("Committed %d roll(s) to session %s", len(entries), session_key)
    return len(entries)


def _commit(
    history: HistoryRegistry,
    widget: HistoryRegistry,
    session_key: str | None,
    lines: list[DiceLine],
    roll_type: RollType | None,
    notes: str,
) -> int:
    """Record rolled lines, one entry per line."""
    entries = [entry_from_line(line, roll_type=roll_type, notes=notes) for line in lines]
    return _record(history, widget, session_key, entries)


def _rolled_response(lines: list[DiceLine], total: int, committed: int) -> RollLinesResponse:
    return RollLinesResponse(
        expression=format_expression(lines),
        lines=[DiceLineOut.from_line(line) for line in lines],
        total=total,
        committed=committed,
    )


@router.get("/dice-types")
async def dice_types() -> list[DiceTypeOut]:
    """List the standard dice."""
    return [DiceTypeOut.model_validate(d) for d in STANDARD_DICE]


@router.get("/presets")
async def list_presets() -> list[PresetOut]:
    presets = []
    for name in PRESETS:
        lines, roll_type = build_preset(name)
        presets.append(
            PresetOut(
                name=name,
                roll_type=roll_type,
                lines=[DiceLineOut.from_line(line) for line in lines],
            )
        )
    return presets


@router.post("/presets/{name}/roll")
async def roll_preset(
    name: str,
    body: CommitOptions | None = None,
    engine: DiceEngine = Depends(get_engine),
    history: HistoryRegistry = Depends(get_history_registry),
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> RollLinesResponse:
    """Roll a named preset, optionally committing it to a session's history."""
    if name not in PRESETS:
        raise HTTPException(status_code=404, detail="Preset not found")
    body = body or CommitOptions()
    lines, roll_type = build_preset(name)
    total = engine.roll_lines(lines)
    committed = _commit(history, widget, body.session_key, lines, roll_type, body.notes)
    return _rolled_response(lines, total, committed)


@router.post("/roll")
async def roll_dice_pool(
    body: PoolRollRequest,
    engine: DiceEngine = Depends(get_engine),
    history: HistoryRegistry = Depends(get_history_registry),
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> PoolRollResponse:
    """Roll a face-keyed pool, e.g. {"dice": {"d6": 2, "d20": 1}, "modifiers": {"bonus": 3}}."""
    modifiers = body.modifiers
    pool = engine.roll_pool(
        body.to_pool(),
        bonus=modifiers.bonus if modifiers else 0,
        penalty=modifiers.penalty if modifiers else 0,
    )
    entry = entry_from_pool(pool, label=body.label, roll_type=body.roll_type, notes=body.notes)
    committed = _record(history, widget, body.session_key, [entry])
    return PoolRollResponse(
        results=pool.results,
        total=pool.total,
        bonus=pool.bonus,
        penalty=pool.penalty,
        breakdown=[PoolBreakdownOut.model_validate(part) for part in pool.breakdown],
        dice_configuration=entry.dice_configuration,
        committed=bool(committed),
    )


@router.post("/parse")
async def parse_expression(
    body: ParseRequest,
    engine: DiceEngine = Depends(get_engine),
) -> ParseResponse:
    """Parse an expression without rolling it."""
    lines = engine.parse(body.expression, strict=body.strict)
    return ParseResponse(
        expression=format_expression(lines),
        lines=[DiceLineOut.from_line(line) for line in lines],
    )


@router.post("/expressions/roll")
async def roll_expression(
    body: RollExpressionRequest,
    engine: DiceEngine = Depends(get_engine),
    history: HistoryRegistry = Depends(get_history_registry),
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> RollLinesResponse:
    """Parse and roll an expression such as "3d6+2d4-1d8+5"."""
    lines, total = engine.roll_expression(body.expression, strict=body.strict)
    committed = _commit(history, widget, body.session_key, lines, body.roll_type, body.notes)
    return _rolled_response(lines, total, committed)


@router.post("/lines/roll")
async def roll_lines(
    body: RollLinesRequest,
    engine: DiceEngine = Depends(get_engine),
    history: HistoryRegistry = Depends(get_history_registry),
    widget: HistoryRegistry = Depends(get_widget_registry),
) -> RollLinesResponse:
    """Roll user-configured dice lines and combine them."""
    lines = [line_in.to_line() for line_in in body.lines]
    total = engine.roll_lines(lines)
    committed = _commit(history, widget, body.session_key, lines, body.roll_type, body.notes)
    return _rolled_response(lines, total, committed)
