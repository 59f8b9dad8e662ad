"""Shared test fixtures."""

from __future__ import annotations

import random
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dulp.actions.service import RewardsEngine
from dulp.auth.jwt import create_access_token
from dulp.config import Settings
from dulp.database import create_sqlite_engine, create_tables
from dulp.main import create_app
from dulp.store.memory import MemoryStore
from dulp.store.sql import SqlStore

# Wednesday; well past the 30-day early adopter window after the 2025-01-01 launch.
START = datetime(2025, 3, 5, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Deterministic clock for the engine; advance it explicitly."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def auth_headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def settings() -> Settings:
    return Settings(redis_url="", store_backend="memory", log_format="console")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def engine(store: MemoryStore, settings: Settings, clock: FrozenClock) -> RewardsEngine:
    return RewardsEngine(store, settings, rng=random.Random(42), clock=clock)


@pytest_asyncio.fixture
async def sql_store(tmp_path: Path) -> AsyncGenerator[SqlStore, None]:
    """SQLite-backed store with the ORM schema created directly."""
    db_engine = create_sqlite_engine(f"sqlite+aiosqlite:///{tmp_path / 'dulp.db'}")
    await create_tables(db_engine)
    store = SqlStore(db_engine)
    yield store
    await store.close()


@pytest.fixture
def sql_engine(sql_store: SqlStore, settings: Settings, clock: FrozenClock) -> RewardsEngine:
    return RewardsEngine(sql_store, settings, rng=random.Random(42), clock=clock)


@pytest_asyncio.fixture
async def client(engine: RewardsEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app with the in-memory engine injected."""
    app = create_app(engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def headers_for():
    """Bearer headers for a user id."""
    return auth_headers


@pytest_asyncio.fixture
async def user(client: AsyncClient) -> dict:
    """A signed-up account: the POST /accounts body plus ready-made auth headers."""
    response = await client.post("/api/v1/accounts", json={"display_name": "alice"})
    assert response.status_code == 201
    data = response.json()
    data["headers"] = {"Authorization": f"Bearer {data['access_token']}"}
    return data
