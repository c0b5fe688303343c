"""Repository for OutboxMessage persistence.

Provides methods for:
- Recording events whose publish failed
- Moving records through their delivery states
- Fetching ready records for the relay job
- Pruning delivered records
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from outbox_service.core.database.exceptions import (
    DuplicateKeyError,
    InvalidTransitionError,
)
from outbox_service.core.database.repository import BaseRepository
from outbox_service.infra.events.outbox.models import (
    MAX_ERROR_LENGTH,
    OutboxMessage,
    OutboxMessageState,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import timedelta

    from sqlalchemy.ext.asyncio import AsyncSession


class OutboxRepository(BaseRepository[OutboxMessage]):
    """Repository for outbox record operations.

    Every method takes the session explicitly and only flushes; the caller
    decides when the unit of work is committed.
    """

    def __init__(self) -> None:
        """Initialize repository with OutboxMessage model."""
        super().__init__(OutboxMessage)

    async def create(self, session: AsyncSession, instance: OutboxMessage) -> OutboxMessage:
        """Insert a new record in state ReadyToSend.

        Raises:
            DuplicateKeyError: A record with the same event_id exists. On a
                racing insert the session must be rolled back by the caller.
        """
        existing = await self.get_by_event_id(session, instance.event_id)
        if existing is not None:
            raise DuplicateKeyError("OutboxMessage", {"event_id": instance.event_id})

        instance.state = OutboxMessageState.READY_TO_SEND
        await self.insert(session, instance, key="event_id")

        self._logger.info(
            "Outbox record created",
            extra={
                "event_id": instance.event_id,
                "event_type": instance.event_type,
                "operation": "outbox.create",
            },
        )
        return instance

    async def get_by_event_id(self, session: AsyncSession, event_id: str) -> OutboxMessage | None:
        """Get a record by its event idempotency key."""
        return await self.get_by(session, OutboxMessage.event_id, event_id)

    async def _get_by_event_id_or_raise(self, session: AsyncSession, event_id: str) -> OutboxMessage:
        return await self.get_by_or_raise(session, OutboxMessage.event_id, event_id)

    async def update_state(
        self,
        session: AsyncSession,
        event_id: str,
        new_state: OutboxMessageState,
        *,
        error: str | None = None,
    ) -> OutboxMessage:
        """Move a record to a new state.

        Raises:
            NotFoundError: No record with this event_id.
            InvalidTransitionError: The move is backward or leaves a terminal state.
        """
        record = await self._get_by_event_id_or_raise(session, event_id)
        previous = record.state
        record.change_state(new_state)
        if error is not None:
            record.last_error = error[:MAX_ERROR_LENGTH]
        await session.flush()

        self._lazy.debug(
            lambda: f"outbox.update_state: {event_id} {OutboxMessageState(previous).value} -> {new_state.value}"
        )
        return record

    async def record_failure(
        self,
        session: AsyncSession,
        event_id: str,
        error: str,
        *,
        max_attempts: int,
    ) -> OutboxMessage:
        """Count a failed attempt for a record.

        Once ``attempts`` reaches ``max_attempts`` the record moves to Failed
        and is no longer picked up by the relay.

        Raises:
            NotFoundError: No record with this event_id.
            InvalidTransitionError: The record is already terminal.
        """
        record = await self._get_by_event_id_or_raise(session, event_id)
        if record.is_terminal:
            raise InvalidTransitionError(
                "OutboxMessage", OutboxMessageState(record.state).value, OutboxMessageState.FAILED.value
            )
        record.register_failure(error)
        self.apply_retry_budget(record, max_attempts=max_attempts)
        await session.flush()
        return record

    def apply_retry_budget(self, record: OutboxMessage, *, max_attempts: int) -> OutboxMessage:
        """Move a non-terminal record to Failed once ``attempts`` reaches ``max_attempts``.

        Shared by every path that counts a failed attempt, including the
        first failure that creates the record.
        """
        if record.is_terminal or record.attempts < max_attempts:
            return record
        record.change_state(OutboxMessageState.FAILED)
        self._logger.warning(
            "Outbox record exhausted its retry budget",
            extra={
                "event_id": record.event_id,
                "event_type": record.event_type,
                "attempts": record.attempts,
                "operation": "outbox.record_failure",
            },
        )
        return record

    async def all_ready_to_send(
        self,
        session: AsyncSession,
        *,
        limit: int | None = None,
    ) -> Sequence[OutboxMessage]:
        """Fetch ReadyToSend records, oldest first.

        Rows are locked with FOR UPDATE SKIP LOCKED where the backend
        supports it (ignored by SQLite).
        """
        stmt = (
            select(OutboxMessage)
            .where(OutboxMessage.state == OutboxMessageState.READY_TO_SEND)
            .order_by(OutboxMessage.created_at.asc(), OutboxMessage.id.asc())
            .with_for_update(skip_locked=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        records = result.scalars().all()
        self._lazy.debug(lambda: f"outbox.all_ready_to_send: {len(records)} records")
        return records

    async def count_by_state(self, session: AsyncSession) -> dict[OutboxMessageState, int]:
        """Count records per state; states without records report zero."""
        stmt = select(OutboxMessage.state, func.count()).group_by(OutboxMessage.state)
        result = await session.execute(stmt)
        counts = dict.fromkeys(OutboxMessageState, 0)
        for state, count in result.all():
            counts[OutboxMessageState(state)] = count
        return counts

    async def purge_completed(self, session: AsyncSession, *, older_than: timedelta) -> int:
        """Delete Completed records last modified before ``now - older_than``.

        Returns:
            Number of deleted records
        """
        cutoff = datetime.now(UTC) - older_than
        stmt = delete(OutboxMessage).where(
            OutboxMessage.state == OutboxMessageState.COMPLETED,
            OutboxMessage.modified_at < cutoff,
        ).execution_options(synchronize_session="fetch")
        result = await session.execute(stmt)
        deleted = result.rowcount or 0
        if deleted:
            self._logger.info(
                "Purged completed outbox records",
                extra={"count": deleted, "operation": "outbox.purge_completed"},
            )
        return deleted


__all__ = ["OutboxRepository"]
