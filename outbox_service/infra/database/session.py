"""Async database engine and session management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from outbox_service.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from outbox_service.core.settings import PostgresSettings

logger = logging.getLogger(__name__)

# Created on first use so settings are read after the environment is set up
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: PostgresSettings) -> AsyncEngine:
    """Create an async engine from database settings."""
    return create_async_engine(settings.get_sqlalchemy_url(), **settings.sqlalchemy_engine_kwargs())


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by request handlers and the relay job.

    ``expire_on_commit=False`` keeps loaded records readable after the
    publisher commits.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_db_settings())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Uncommitted work is rolled back when the block raises.

    Example:
        async with get_async_session() as session:
            record = await OutboxRepository().get_by_event_id(session, event_id)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def ensure_outbox_table() -> None:
    """Create the outbox_messages table if migrations haven't run yet.

    Idempotent thanks to SQLAlchemy's ``checkfirst`` guard.
    """
    from outbox_service.infra.events.outbox.models import OutboxMessage

    async with get_engine().begin() as conn:
        await conn.run_sync(
            lambda sync_conn: cast("Any", OutboxMessage.__table__).create(
                bind=sync_conn, checkfirst=True
            )
        )


async def init_database() -> None:
    """Verify the database is reachable and the outbox table exists.

    Raises:
        ConnectionError: If the database cannot be reached.
    """
    logger.info("Initializing database connection")
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception("Database connection failed", extra={"error": str(e)})
        raise ConnectionError(f"Failed to connect to database: {e}") from e

    await ensure_outbox_table()
    logger.info("Database connection established")


async def close_database() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is None:
        return
    logger.info("Closing database connections")
    await _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "build_engine",
    "build_session_factory",
    "close_database",
    "ensure_outbox_table",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
