"""Async SQLAlchemy engine management."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dulp.db.base import Base

_engine: AsyncEngine | None = None


def create_sqlite_engine(url: str) -> AsyncEngine:
    """SQLite engine with SAVEPOINT support.

    The sqlite3 driver manages BEGIN on its own and mishandles savepoints, so
    autocommit is turned off at the driver and SQLAlchemy emits BEGIN itself.
    """
    engine = create_async_engine(url, echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:  # noqa: ANN401
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:  # noqa: ANN401
        conn.exec_driver_sql("BEGIN")

    return engine


async def init_db(url: str) -> AsyncEngine:
    """Initialize the database engine."""
    global _engine  # noqa: PLW0603
    if url.startswith("sqlite"):
        _engine = create_sqlite_engine(url)
    else:
        _engine = create_async_engine(
            url,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
            connect_args={"statement_cache_size": 0},
        )
    return _engine


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables directly. Used for SQLite; Postgres goes through Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the database engine."""
    global _engine  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None


def get_engine() -> AsyncEngine:
    """Get the async engine instance."""
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine
