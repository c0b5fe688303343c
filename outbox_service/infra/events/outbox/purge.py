"""Retention job for delivered outbox records.

Deletes Completed records older than ``OutboxSettings.retention_days``.
ReadyToSend and Failed records are never touched; Failed ones stay for
operators to inspect.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, ClassVar

from outbox_service.core.settings import get_outbox_settings
from outbox_service.infra.events.outbox.repository import OutboxRepository
from outbox_service.infra.logging import remove_from_log_context, set_log_context
from outbox_service.tasks.scheduler import JobId

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    from outbox_service.core.settings import OutboxSettings

logger = logging.getLogger(__name__)


class OutboxPurgeJob:
    """Scheduled job that prunes Completed outbox records."""

    job_id: ClassVar[JobId] = JobId.OUTBOX_PURGE

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        *,
        settings: OutboxSettings | None = None,
        repository: OutboxRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_outbox_settings()
        self._repository = repository or OutboxRepository()

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self._settings.retention_days)

    async def run(self) -> dict:
        """Delete Completed records past the retention period.

        Returns:
            Cleanup result with the deleted count.
        """
        set_log_context(job_id=self.job_id.value)
        try:
            async with self._session_factory() as session:
                deleted = await self._repository.purge_completed(session, older_than=self.retention)
                await self._repository.commit(session)
        finally:
            remove_from_log_context("job_id")

        result = {
            "status": "success",
            "deleted_count": deleted,
            "retention_days": self._settings.retention_days,
        }
        logger.info("Outbox purge completed", extra=result)
        return result


__all__ = ["OutboxPurgeJob"]
