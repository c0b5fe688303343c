"""Generic repository base for SQLAlchemy models.

The session is passed to every call; a repository never opens, commits or
closes a session on its own except through ``commit``, which callers use
to end their own unit of work.

Example:
    class OutboxRepository(BaseRepository[OutboxMessage]):
        async def get_by_event_id(self, session, event_id):
            return await self.get_by(session, OutboxMessage.event_id, event_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from outbox_service.core.database.exceptions import DuplicateKeyError, NotFoundError
from outbox_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


class BaseRepository[T]:
    """Lookup and insert helpers shared by model repositories.

    Subclasses add the queries their model needs and call these helpers
    for single-row lookups and inserts.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # DEBUG messages built only when enabled
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Fetch the single row whose ``attr`` equals ``value``.

        ``attr`` should be a unique column (e.g. ``OutboxMessage.event_id``).
        """
        result = await session.execute(select(self.model).where(attr == value))
        instance = result.scalar_one_or_none()
        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> {'hit' if instance else 'miss'}"
        )
        return instance

    async def get_by_or_raise(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T:
        """Like ``get_by`` but a missing row raises ``NotFoundError``."""
        instance = await self.get_by(session, attr, value)
        if instance is None:
            raise NotFoundError(self.model.__name__, {attr.key: value})
        return instance

    async def insert(self, session: AsyncSession, instance: T, *, key: str) -> T:
        """Add and flush a new row.

        Flushing here surfaces unique-constraint violations at the call
        site instead of at commit.

        Args:
            key: Name of the unique attribute reported when the insert
                collides with an existing row.

        Raises:
            DuplicateKeyError: The database rejected the row on a unique
                constraint. The session must be rolled back by the caller.
        """
        session.add(instance)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise DuplicateKeyError(
                self.model.__name__, {key: getattr(instance, key, None)}
            ) from exc
        return instance

    async def commit(self, session: AsyncSession) -> None:
        """Commit the caller's unit of work."""
        await session.commit()


__all__ = ["BaseRepository"]
