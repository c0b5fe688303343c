"""Unit tests for the outbox retention job."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from outbox_service.core.settings import OutboxSettings
from outbox_service.infra.events.outbox import OutboxMessage, OutboxMessageState, OutboxRepository
from outbox_service.infra.events.outbox.purge import OutboxPurgeJob
from outbox_service.infra.logging import get_log_context
from outbox_service.tasks.scheduler import JobId


async def _store(session_factory, event_id, *, state, age):
    repository = OutboxRepository()
    async with session_factory() as session:
        record = OutboxMessage(event_id=event_id, event_type="order.placed", payload="{}")
        await repository.create(session, record)
        if state is not OutboxMessageState.READY_TO_SEND:
            await repository.update_state(session, event_id, state)
        record.modified_at = datetime.now(UTC) - age
        await repository.commit(session)


class TestOutboxPurgeJob:
    def test_identity_and_retention(self, session_factory):
        job = OutboxPurgeJob(session_factory, settings=OutboxSettings(retention_days=3))

        assert job.job_id is JobId.OUTBOX_PURGE
        assert job.retention == timedelta(days=3)

    @pytest.mark.asyncio
    async def test_deletes_only_old_completed_records(self, session_factory):
        State = OutboxMessageState
        await _store(session_factory, "old-done", state=State.COMPLETED, age=timedelta(days=10))
        await _store(session_factory, "new-done", state=State.COMPLETED, age=timedelta(hours=1))
        await _store(session_factory, "old-failed", state=State.FAILED, age=timedelta(days=10))
        await _store(session_factory, "old-ready", state=State.READY_TO_SEND, age=timedelta(days=10))
        job = OutboxPurgeJob(session_factory, settings=OutboxSettings(retention_days=7))

        result = await job.run()

        assert result["deleted_count"] == 1
        assert result["retention_days"] == 7
        async with session_factory() as session:
            counts = await OutboxRepository().count_by_state(session)
        assert counts[State.COMPLETED] == 1
        assert counts[State.FAILED] == 1
        assert counts[State.READY_TO_SEND] == 1
        assert "job_id" not in get_log_context()
