"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dulp.achievements.router import router as achievements_router
from dulp.actions.service import RewardsEngine
from dulp.config import Settings, get_settings
from dulp.database import close_db, create_tables, init_db
from dulp.health.router import router as health_router
from dulp.ledger.router import router as ledger_router
from dulp.middleware import setup_middleware
from dulp.progression.router import router as progression_router
from dulp.quests.router import router as quests_router
from dulp.redis_client import close_redis, init_redis
from dulp.rewards.router import router as rewards_router
from dulp.store.base import Store
from dulp.store.memory import MemoryStore
from dulp.store.sql import SqlStore

logger = logging.getLogger(__name__)


async def build_store(settings: Settings) -> Store:
    """Store for the configured backend. SQLite schemas are created on the fly."""
    if settings.store_backend == "memory":
        return MemoryStore()
    if settings.store_backend == "sql":
        engine = await init_db(settings.database_url)
        if settings.database_url.startswith("sqlite"):
            await create_tables(engine)
        return SqlStore(engine)
    msg = f"Unknown store backend: {settings.store_backend!r}"
    raise ValueError(msg)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    if getattr(app.state, "engine", None) is not None:
        # Engine injected by the caller, which owns its resources.
        yield
        return

    settings = get_settings()
    redis = await init_redis(settings.redis_url)
    store = await build_store(settings)
    app.state.engine = RewardsEngine(store, settings, redis=redis)
    logger.info("Rewards engine started (store=%s, redis=%s)", settings.store_backend, redis is not None)

    yield

    app.state.engine = None
    await store.close()
    await close_db()
    await close_redis()


def create_app(engine: RewardsEngine | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dulpton Point Rewards API",
        description="DULP reward ledger and gamification engine",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.engine = engine

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ledger_router)
    app.include_router(progression_router)
    app.include_router(rewards_router)
    app.include_router(achievements_router)
    app.include_router(quests_router)

    return app


app = create_app()
