"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated settings instances
    - Database Fixtures: in-memory SQLite engine, session and session factory
    - Messaging Fixtures: AsyncMock message bus
    - Event Fixtures: registries and sample events
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tests.fixtures.events import (
    OrderPlacedIntegrationEvent,
    PaymentCapturedIntegrationEvent,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from outbox_service.core.events import EventRegistry
    from outbox_service.core.settings import OutboxSettings

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None]:
    """Reload settings for every test so env changes apply."""
    from outbox_service.core.settings import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def outbox_settings() -> OutboxSettings:
    """Small retry budget and short timeout for fast tests."""
    from outbox_service.core.settings import OutboxSettings

    return OutboxSettings(max_attempts=3, publish_timeout=0.5, batch_size=50)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    StaticPool shares one connection, so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    # pysqlite emits its own BEGIN lazily, which breaks SAVEPOINT scoping
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def session_factory(db_engine: AsyncEngine) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Session factory over a freshly created schema."""
    from outbox_service.core.database.base import Base
    from outbox_service.infra.events.outbox import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Async database session, rolled back after the test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Messaging Fixtures
# ============================================================================


@pytest.fixture
def bus() -> AsyncMock:
    """Message bus whose publish succeeds unless a side_effect is set.

    Example:
        bus.publish.side_effect = ConnectionError("broker down")
    """
    mock = AsyncMock()
    mock.publish = AsyncMock(return_value=None)
    return mock


# ============================================================================
# Event Fixtures
# ============================================================================


@pytest.fixture
def registry() -> EventRegistry:
    """Fresh registry with the sample integration events."""
    from outbox_service.core.events import EventRegistry

    reg = EventRegistry()
    reg.register(OrderPlacedIntegrationEvent)
    reg.register(PaymentCapturedIntegrationEvent)
    return reg


@pytest.fixture
def order_event() -> OrderPlacedIntegrationEvent:
    return OrderPlacedIntegrationEvent(event_id="E1", order_id="O1", correlation_id="corr-1")
