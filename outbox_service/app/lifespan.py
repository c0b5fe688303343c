"""Application lifespan management.

Startup Order:
1. Logging - always runs first
2. Jobs - relay (needs database and messaging) and purge (needs database
   and an outbox_purge schedule); every job must have a valid cron
   schedule (fatal)
3. Database - conditional on configuration
4. Messaging (RabbitMQ) - conditional on configuration
5. Scheduler - started when enabled and jobs exist

Shutdown Order: Reverse of startup
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from outbox_service.core.events import DomainEventDispatcher, EventRegistry, event_registry
from outbox_service.core.settings import (
    get_db_settings,
    get_outbox_settings,
    get_rabbit_settings,
    get_scheduler_settings,
)
from outbox_service.infra.database import close_database, get_session_factory, init_database
from outbox_service.infra.events.outbox.purge import OutboxPurgeJob
from outbox_service.infra.events.outbox.relay import OutboxRelayJob
from outbox_service.infra.logging import setup_logging
from outbox_service.infra.messaging import (
    RabbitMessageBus,
    UnavailableMessageBus,
    create_rabbit_broker,
)
from outbox_service.tasks.scheduler import (
    create_scheduler,
    register_jobs,
    start_scheduler,
    stop_scheduler,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from contextlib import AbstractAsyncContextManager
    from typing import Any

    from apscheduler.schedulers.asyncio import AsyncIOScheduler
    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.infra.messaging import MessageBus
    from outbox_service.tasks.scheduler import JobId

logger = logging.getLogger(__name__)


@dataclass
class OutboxRuntime:
    """Components shared by request handlers and background jobs."""

    bus: MessageBus
    registry: EventRegistry
    dispatcher: DomainEventDispatcher
    scheduler: AsyncIOScheduler
    rabbit_bus: RabbitMessageBus | None = None
    relay: OutboxRelayJob | None = None
    purge: OutboxPurgeJob | None = None
    database_enabled: bool = False


async def start_outbox_runtime(
    *,
    registry: EventRegistry | None = None,
    dispatcher: DomainEventDispatcher | None = None,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] | None = None,
) -> OutboxRuntime:
    """Build and start the outbox components.

    Schedules are validated before any connection is opened.

    Raises:
        ConfigurationError: A registered job has no valid cron schedule.
        ConnectionError: Database or broker unreachable.
    """
    db_settings = get_db_settings()
    rabbit_settings = get_rabbit_settings()
    scheduler_settings = get_scheduler_settings()

    registry = registry if registry is not None else event_registry
    scheduler = create_scheduler(scheduler_settings)

    broker = create_rabbit_broker(rabbit_settings)
    rabbit_bus = RabbitMessageBus.from_settings(broker, rabbit_settings) if broker else None

    relay: OutboxRelayJob | None = None
    jobs: dict[JobId, Callable[[], Awaitable[Any]]] = {}
    if rabbit_bus is not None and db_settings.is_configured:
        relay = OutboxRelayJob(
            session_factory or get_session_factory(),
            rabbit_bus,
            registry,
            settings=get_outbox_settings(),
        )
        jobs[relay.job_id] = relay.run
    elif db_settings.is_configured:
        logger.warning("Outbox relay disabled - RabbitMQ not configured")

    # Retention is opt-in: the purge job only runs when it has a schedule
    purge: OutboxPurgeJob | None = None
    if db_settings.is_configured and scheduler_settings.schedules.get(OutboxPurgeJob.job_id.value):
        purge = OutboxPurgeJob(
            session_factory or get_session_factory(),
            settings=get_outbox_settings(),
        )
        jobs[purge.job_id] = purge.run

    register_jobs(scheduler, jobs, scheduler_settings)

    runtime = OutboxRuntime(
        bus=rabbit_bus or UnavailableMessageBus(),
        registry=registry,
        dispatcher=dispatcher if dispatcher is not None else DomainEventDispatcher(),
        scheduler=scheduler,
        rabbit_bus=rabbit_bus,
        relay=relay,
        purge=purge,
        database_enabled=db_settings.is_configured,
    )

    bus_started = False
    try:
        if runtime.database_enabled:
            await init_database()
        if rabbit_bus is not None:
            await rabbit_bus.start()
            bus_started = True
        if scheduler_settings.enabled and jobs:
            await start_scheduler(scheduler)
    except Exception:
        logger.exception("Outbox runtime failed to start, releasing connections")
        if bus_started:
            await rabbit_bus.stop()
        if runtime.database_enabled:
            await close_database()
        raise

    logger.info(
        "Outbox runtime started",
        extra={
            "event_types": registry.list_types(),
            "relay_enabled": relay is not None,
        },
    )
    return runtime


async def stop_outbox_runtime(runtime: OutboxRuntime) -> None:
    """Stop scheduler, broker and database in reverse startup order."""
    await stop_scheduler(runtime.scheduler)
    if runtime.rabbit_bus is not None:
        await runtime.rabbit_bus.stop()
    if runtime.database_enabled:
        await close_database()
    logger.info("Outbox runtime stopped")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """FastAPI lifespan: start the outbox runtime and stop it on exit.

    Handlers registered on ``app.state.domain_event_dispatcher`` before
    startup are kept.
    """
    setup_logging()

    runtime = await start_outbox_runtime(
        dispatcher=getattr(app.state, "domain_event_dispatcher", None),
    )
    app.state.outbox = runtime
    try:
        yield
    finally:
        await stop_outbox_runtime(runtime)


__all__ = ["OutboxRuntime", "lifespan", "start_outbox_runtime", "stop_outbox_runtime"]
