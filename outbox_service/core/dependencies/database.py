"""Database dependencies for FastAPI route handlers.

Use ``get_db_session()`` in route handlers; use
``outbox_service.infra.database.get_async_session()`` in jobs and scripts.
Both share the same session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from outbox_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Yields:
        Database session that is automatically closed after request.
    """
    async with get_async_session() as session:
        yield session
