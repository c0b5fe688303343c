"""Event dependencies for FastAPI route handlers.

Example:
    @router.post("/orders")
    async def place_order(
        publisher: EventPublisherDep,
        dispatcher: DomainEventDispatcherDep,
    ) -> None:
        await dispatcher.dispatch(OrderPlaced(order_id="O1"))
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from outbox_service.app.lifespan import OutboxRuntime
from outbox_service.core.dependencies.database import get_db_session
from outbox_service.core.events import DomainEventDispatcher, IntegrationEventPublisher

CORRELATION_HEADERS = ("x-correlation-id", "x-request-id")


def get_outbox_runtime(request: Request) -> OutboxRuntime:
    """Return the runtime created by the application lifespan.

    Raises:
        RuntimeError: The lifespan has not run.
    """
    runtime = getattr(request.app.state, "outbox", None)
    if runtime is None:
        raise RuntimeError("Outbox runtime is not initialized; is the lifespan configured?")
    return runtime


def _correlation_id(request: Request) -> str | None:
    for header in CORRELATION_HEADERS:
        value = request.headers.get(header)
        if value:
            return value[:64]
    return None


async def get_event_publisher(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> IntegrationEventPublisher:
    """Publisher bound to the request's session and correlation id."""
    runtime = get_outbox_runtime(request)
    return IntegrationEventPublisher(
        session,
        runtime.bus,
        correlation_id=_correlation_id(request),
    )


def get_domain_event_dispatcher(request: Request) -> DomainEventDispatcher:
    return get_outbox_runtime(request).dispatcher


OutboxRuntimeDep = Annotated[OutboxRuntime, Depends(get_outbox_runtime)]
EventPublisherDep = Annotated[IntegrationEventPublisher, Depends(get_event_publisher)]
DomainEventDispatcherDep = Annotated[DomainEventDispatcher, Depends(get_domain_event_dispatcher)]

__all__ = [
    "DomainEventDispatcherDep",
    "EventPublisherDep",
    "OutboxRuntimeDep",
    "get_domain_event_dispatcher",
    "get_event_publisher",
    "get_outbox_runtime",
]
