"""Integration event publisher with outbox fallback.

Events are published to the message bus right away. Only when the publish
fails is the event written to the outbox table, from which the relay job
retries it later:

1. Publish the event to the bus (bounded by ``publish_timeout``)
2. On success, mark an existing outbox record as Completed
3. On failure, store the event (or count another failed attempt) in the
   outbox and carry on; the failure is logged, never raised

This gives at-least-once delivery: an event is either delivered or held
in the outbox until it is delivered or declared Failed.

Usage:
    async def place_order(session: AsyncSession, bus: MessageBus, order: Order) -> None:
        session.add(order)
        publisher = IntegrationEventPublisher(session, bus, autocommit=False)
        await publisher.publish(OrderPlacedIntegrationEvent(order_id=str(order.id)))
        # Order and any outbox record are committed together
        await session.commit()
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from outbox_service.core.database.exceptions import DuplicateKeyError
from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.events.outbox.models import OutboxMessage, OutboxMessageState
from outbox_service.infra.events.outbox.repository import OutboxRepository

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.core.events.base import IntegrationEvent
    from outbox_service.core.settings import OutboxSettings
    from outbox_service.infra.messaging.bus import MessageBus

logger = logging.getLogger(__name__)


class PublishOutcome(str, Enum):
    """Result of one publish attempt."""

    PUBLISHED = "published"
    DEFERRED = "deferred"
    FAILED = "failed"
    SKIPPED = "skipped"


def _describe(exc: BaseException) -> str:
    if isinstance(exc, TimeoutError):
        return "Publish timed out"
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


class IntegrationEventPublisher:
    """Publishes integration events and records failures in the outbox.

    The publisher works inside the caller's session. With ``autocommit``
    (the default) every outbox write is committed immediately; otherwise the
    write is only flushed and the caller commits it together with its own
    changes.

    Attributes:
        session: Database session for outbox writes
        bus: Message bus the events are delivered to
    """

    def __init__(
        self,
        session: AsyncSession,
        bus: MessageBus,
        *,
        repository: OutboxRepository | None = None,
        settings: OutboxSettings | None = None,
        autocommit: bool = True,
        correlation_id: str | None = None,
    ) -> None:
        self.session = session
        self.bus = bus
        self._repository = repository or OutboxRepository()
        self._settings = settings or get_outbox_settings()
        self._autocommit = autocommit
        self._correlation_id = correlation_id

    async def publish(self, event: IntegrationEvent) -> PublishOutcome:
        """Publish an event, falling back to the outbox on failure.

        Returns:
            PUBLISHED on delivery, DEFERRED when the event waits in the
            outbox, FAILED when its retry budget is exhausted and SKIPPED
            when a terminal record for the event already exists.

        Raises:
            RepositoryError: Outbox storage failed.
            SQLAlchemyError: Outbox storage failed.
        """
        if self._correlation_id and not event.correlation_id:
            event = event.with_correlation(self._correlation_id)

        existing = await self._repository.get_by_event_id(self.session, event.event_id)
        if existing is not None and existing.is_terminal:
            logger.info(
                "Outbox record already terminal, skipping publish",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "state": OutboxMessageState(existing.state).value,
                },
            )
            return PublishOutcome.SKIPPED

        try:
            await asyncio.wait_for(self.bus.publish(event), timeout=self._settings.publish_timeout)
        except Exception as exc:
            return await self._defer(event, existing, exc)

        if existing is not None:
            await self._repository.update_state(
                self.session, event.event_id, OutboxMessageState.COMPLETED
            )
            await self._commit()

        logger.debug(
            "Integration event published",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "correlation_id": event.correlation_id,
                "from_outbox": existing is not None,
            },
        )
        return PublishOutcome.PUBLISHED

    async def publish_many(self, events: Iterable[IntegrationEvent]) -> list[PublishOutcome]:
        """Publish events one after another, in order."""
        return [await self.publish(event) for event in events]

    async def report_undeliverable(self, event_id: str, error: BaseException | str) -> OutboxMessage:
        """Count a failed attempt for a record that could not be delivered.

        Used for records whose payload cannot be turned back into an event.
        Shares the retry budget with publish failures.
        """
        message = error if isinstance(error, str) else _describe(error)
        record = await self._repository.record_failure(
            self.session,
            event_id,
            message,
            max_attempts=self._settings.max_attempts,
        )
        await self._commit()
        logger.warning(
            "Outbox record could not be delivered",
            extra={
                "event_id": event_id,
                "event_type": record.event_type,
                "attempts": record.attempts,
                "state": OutboxMessageState(record.state).value,
                "error": message,
            },
        )
        return record

    async def _defer(
        self,
        event: IntegrationEvent,
        existing: OutboxMessage | None,
        exc: Exception,
    ) -> PublishOutcome:
        error = _describe(exc)
        if existing is None:
            record = await self._store_failed(event, error)
        else:
            record = await self._repository.record_failure(
                self.session,
                event.event_id,
                error,
                max_attempts=self._settings.max_attempts,
            )
        await self._commit()

        if record.state == OutboxMessageState.COMPLETED:
            # Delivered by a concurrent publisher while this attempt failed
            return PublishOutcome.SKIPPED

        outcome = (
            PublishOutcome.FAILED
            if record.state == OutboxMessageState.FAILED
            else PublishOutcome.DEFERRED
        )
        logger.warning(
            "Integration event publish failed, stored in outbox",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "attempts": record.attempts,
                "outcome": outcome.value,
                "error": error,
            },
        )
        return outcome

    async def _store_failed(self, event: IntegrationEvent, error: str) -> OutboxMessage:
        """Insert the outbox record for a first failed publish.

        The insert runs in a savepoint. When a concurrent publisher stored
        the same event_id first, only the savepoint is rolled back and the
        failure is counted on the stored record instead.
        """
        record = OutboxMessage.from_event(event)
        record.register_failure(error)
        try:
            async with self.session.begin_nested():
                await self._repository.create(self.session, record)
                self._repository.apply_retry_budget(record, max_attempts=self._settings.max_attempts)
        except DuplicateKeyError:
            logger.info(
                "Outbox record stored concurrently, counting failure on it",
                extra={"event_id": event.event_id, "event_type": event.event_type},
            )
            stored = await self._repository.get_by_event_id(self.session, event.event_id)
            if stored is not None and stored.is_terminal:
                return stored
            return await self._repository.record_failure(
                self.session,
                event.event_id,
                error,
                max_attempts=self._settings.max_attempts,
            )
        return record

    async def _commit(self) -> None:
        if self._autocommit:
            await self._repository.commit(self.session)
        else:
            await self.session.flush()


__all__ = ["IntegrationEventPublisher", "PublishOutcome"]
