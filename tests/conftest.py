"""Shared test fixtures for the dicebox test suite.

Randomness
----------
scripted  (function scope)
    The ScriptedRandom class. ``scripted([3, 5, 6])`` returns a RandomSource
    that replays those values in order and fails the test if asked for more.

use_rng  (function scope)
    Installs a RandomSource for every request made through ``client`` by
    overriding the get_rng dependency. Removed after the test.

DB-integrated tests
-------------------
db_engine  (function scope)
    Creates the SQLite schema in an in-memory database. Uses StaticPool so
    all logical connections share the same database.

db_conn  (function scope)
    Opens a connection and begins an outer transaction that is rolled back
    after the test.

client  (function scope)
    AsyncClient wired to the FastAPI app. Overrides get_db so every request
    uses the same connection as db_conn. Each test also gets fresh in-memory
    history registries.

db  (function scope)
    An AsyncSession on the same connection as client. Use this when a test
    needs to assert DB state that was written by an HTTP request.

For tests with no HTTP layer (parser, engine, stats), no fixture is needed.
"""

from __future__ import annotations

from collections.abc import Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from dicebox.database import Base, get_db
from dicebox.dependencies import get_rng
from dicebox.history import HistoryRegistry
from dicebox.main import app


class ScriptedRandom:
    """RandomSource that replays a fixed sequence of values."""

    def __init__(self, values: Iterable[int]) -> None:
        self._values = list(values)
        self.calls: list[tuple[int, int]] = []

    def randint(self, a: int, b: int) -> int:
        self.calls.append((a, b))
        if not self._values:
            raise AssertionError("ScriptedRandom ran out of values")
        value = self._values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
        return value

    @property
    def remaining(self) -> int:
        return len(self._values)


class MaxRandom:
    """RandomSource that always rolls the highest face."""

    def __init__(self) -> None:
        self.calls = 0

    def randint(self, a: int, b: int) -> int:
        self.calls += 1
        return b


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture
def max_rng():
    return MaxRandom()


@pytest.fixture
def use_rng():
    def _use(rng) -> None:
        app.dependency_overrides[get_rng] = lambda: rng

    yield _use
    app.dependency_overrides.pop(get_rng, None)


@pytest.fixture(autouse=True)
def fresh_history():
    """Give every test empty session histories."""
    history, widget = app.state.history, app.state.widget_history
    app.state.history = HistoryRegistry(history.capacity, history.max_sessions)
    app.state.widget_history = HistoryRegistry(widget.capacity, widget.max_sessions)
    yield
    app.state.history, app.state.widget_history = history, widget


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_conn(db_engine):
    """Per-test connection with a transaction that rolls back after the test."""
    async with db_engine.connect() as conn:
        await conn.begin()
        yield conn
        await conn.rollback()


@pytest_asyncio.fixture
async def client(db_conn):
    """AsyncClient wired to the app with DB writes rolled back after each test."""

    async def override_get_db():
        async with AsyncSession(
            bind=db_conn,
            join_transaction_mode="create_savepoint",
            expire_on_commit=False,
        ) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db(db_conn):
    """AsyncSession on the same connection as client."""
    async with AsyncSession(
        bind=db_conn,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    ) as session:
        yield session
