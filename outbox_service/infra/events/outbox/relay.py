"""Outbox relay job.

On each scheduled tick the relay takes a snapshot of ReadyToSend records,
rebuilds every record's typed event and hands it to the
``IntegrationEventPublisher``. The publisher owns all state changes; the
relay only counts outcomes. A failure on one record is logged and the tick
moves on to the next record.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, ClassVar

from outbox_service.core.database.base import generate_uuid7
from outbox_service.core.events.publisher import IntegrationEventPublisher, PublishOutcome
from outbox_service.core.exceptions import EventReconstructionError
from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.events.outbox.models import OutboxMessage, OutboxMessageState
from outbox_service.infra.events.outbox.repository import OutboxRepository
from outbox_service.infra.logging import remove_from_log_context, set_log_context
from outbox_service.tasks.scheduler import JobId

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.core.events.registry import EventRegistry
    from outbox_service.core.settings import OutboxSettings
    from outbox_service.infra.messaging.bus import MessageBus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PendingRecord:
    """Plain-value copy of an outbox record taken at the start of a tick."""

    event_id: str
    event_type: str
    event_version: int
    payload: str

    @classmethod
    def from_model(cls, record: OutboxMessage) -> PendingRecord:
        return cls(
            event_id=record.event_id,
            event_type=record.event_type,
            event_version=record.event_version,
            payload=record.payload,
        )


@dataclass(slots=True)
class RelayResult:
    """Outcome counts for one relay tick."""

    total: int = 0
    published: int = 0
    deferred: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: PublishOutcome) -> None:
        match outcome:
            case PublishOutcome.PUBLISHED:
                self.published += 1
            case PublishOutcome.DEFERRED:
                self.deferred += 1
            case PublishOutcome.FAILED:
                self.failed += 1
            case PublishOutcome.SKIPPED:
                self.skipped += 1

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class OutboxRelayJob:
    """Scheduled job that retries delivery of ReadyToSend outbox records.

    Args:
        session_factory: Callable returning an async context manager that
            yields a session (e.g. an ``async_sessionmaker``).
        bus: Message bus events are delivered to.
        registry: Registry used to rebuild typed events from payloads.
        settings: Outbox settings (batch size, retry budget, timeout).
    """

    job_id: ClassVar[JobId] = JobId.OUTBOX_RELAY

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        bus: MessageBus,
        registry: EventRegistry,
        *,
        settings: OutboxSettings | None = None,
        repository: OutboxRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = bus
        self._registry = registry
        self._settings = settings or get_outbox_settings()
        self._repository = repository or OutboxRepository()

    async def run(self) -> RelayResult:
        """Run one relay tick.

        Returns:
            Counts of what happened to each record in the snapshot.

        Raises:
            SQLAlchemyError: The snapshot query itself failed.
        """
        result = RelayResult()
        set_log_context(job_id=self.job_id.value, tick_id=str(generate_uuid7()))
        try:
            async with self._session_factory() as session:
                records = await self._repository.all_ready_to_send(
                    session, limit=self._settings.batch_size
                )
                snapshot = [PendingRecord.from_model(record) for record in records]
                if not snapshot:
                    logger.debug("No outbox records ready to send")
                    return result

                logger.info("Relaying outbox records", extra={"count": len(snapshot)})
                publisher = IntegrationEventPublisher(
                    session,
                    self._bus,
                    repository=self._repository,
                    settings=self._settings,
                )
                for pending in snapshot:
                    result.total += 1
                    try:
                        outcome = await self._relay(publisher, pending)
                    except Exception:
                        result.errors += 1
                        logger.exception(
                            "Failed to relay outbox record",
                            extra={"event_id": pending.event_id, "event_type": pending.event_type},
                        )
                        await session.rollback()
                        continue
                    result.record(outcome)

            logger.info("Outbox relay tick finished", extra=result.as_dict())
            return result
        finally:
            remove_from_log_context("job_id", "tick_id")

    async def __call__(self) -> RelayResult:
        return await self.run()

    async def _relay(
        self,
        publisher: IntegrationEventPublisher,
        pending: PendingRecord,
    ) -> PublishOutcome:
        try:
            event = self._registry.reconstruct(
                pending.event_type,
                pending.payload,
                version=pending.event_version,
            )
        except EventReconstructionError as exc:
            record = await publisher.report_undeliverable(pending.event_id, str(exc))
            if record.state == OutboxMessageState.FAILED:
                return PublishOutcome.FAILED
            return PublishOutcome.DEFERRED

        return await publisher.publish(event)


__all__ = ["OutboxRelayJob", "PendingRecord", "RelayResult"]
