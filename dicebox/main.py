from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request

from dicebox import models as _models  # noqa: F401 - registers models with Base.metadata
from dicebox.config import settings
from dicebox.database import Base, engine
from dicebox.dice import DiceError
from dicebox.history import HistoryRegistry
from dicebox.routers import history, rolls

logger = logging.getLogger(__name__)

logging.getLogger("dicebox").setLevel(settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title="Dicebox", lifespan=lifespan)

# One history store per session key; never shared across sessions.
app.state.history = HistoryRegistry(settings.history_capacity, settings.max_sessions)
app.state.widget_history = HistoryRegistry(
    settings.widget_history_capacity, settings.max_sessions
)

app.include_router(rolls.router)
app.include_router(history.router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.exception_handler(DiceError)
async def dice_error_handler(request: Request, exc: DiceError) -> JSONResponse:
    logger.info("Rejected dice request to %s: %s", request.url.path, exc)
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": exc.kind})
