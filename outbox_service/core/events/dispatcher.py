"""In-process fan-out of domain events.

Handlers are bound explicitly at startup and run inside the caller's unit
of work, so a failing handler aborts the whole operation.

Usage:
    dispatcher = DomainEventDispatcher()

    @dispatcher.subscribe(OrderPlaced)
    async def send_order_placed(event: OrderPlaced) -> None:
        await publisher.publish(OrderPlacedIntegrationEvent(order_id=event.order_id))

    await dispatcher.dispatch(OrderPlaced(order_id="O1"))
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from outbox_service.core.events.base import DomainEvent
from outbox_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from outbox_service.core.events.aggregate import EventSourcedMixin

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@runtime_checkable
class DomainEventHandler(Protocol):
    """Object-style handler; callables are invoked directly instead."""

    async def handle(self, event: Any) -> None: ...


HandlerFunc = Callable[[Any], Awaitable[None]]
Handler = DomainEventHandler | HandlerFunc


def _handler_name(handler: Handler) -> str:
    target = handler if inspect.isfunction(handler) or inspect.ismethod(handler) else type(handler)
    return getattr(target, "__qualname__", repr(handler))


class DomainEventDispatcher:
    """Routes domain events to every handler registered for a compatible type.

    A handler registered for a base class receives events of all its
    subclasses. Handlers run sequentially in registration order.
    """

    def __init__(self) -> None:
        self._registrations: list[tuple[type[DomainEvent], Handler]] = []

    def register(self, event_cls: type[DomainEvent], handler: Handler) -> Handler:
        """Bind a handler to a domain event type.

        Raises:
            TypeError: If ``event_cls`` is not a DomainEvent subclass or the
                handler is neither an async callable nor has ``handle()``.
        """
        if not (isinstance(event_cls, type) and issubclass(event_cls, DomainEvent)):
            raise TypeError(f"{event_cls!r} is not a DomainEvent subclass")
        if not isinstance(handler, DomainEventHandler) and not callable(handler):
            raise TypeError(f"{handler!r} is not a domain event handler")

        self._registrations.append((event_cls, handler))
        logger.debug(
            "Registered domain event handler",
            extra={"event_class": event_cls.__name__, "handler": _handler_name(handler)},
        )
        return handler

    def subscribe(self, event_cls: type[DomainEvent]) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(handler: Handler) -> Handler:
            return self.register(event_cls, handler)

        return decorator

    def handlers_for(self, event: DomainEvent) -> list[Handler]:
        """Return handlers compatible with the event, in registration order."""
        return [handler for event_cls, handler in self._registrations if isinstance(event, event_cls)]

    async def dispatch(self, event: DomainEvent) -> None:
        """Run every compatible handler for the event.

        The first handler error propagates immediately and the remaining
        handlers are not called. An event with no handlers is a no-op.

        Raises:
            TypeError: If ``event`` is not a DomainEvent.
        """
        if not isinstance(event, DomainEvent):
            raise TypeError(f"Expected a DomainEvent, got {type(event).__name__}")

        handlers = self.handlers_for(event)
        if not handlers:
            lazy_logger.debug(lambda: f"No handlers for domain event {type(event).__name__}")
            return

        for handler in handlers:
            try:
                if callable(handler):
                    await handler(event)
                else:
                    await handler.handle(event)
            except Exception:
                logger.warning(
                    "Domain event handler failed",
                    extra={"event_class": type(event).__name__, "handler": _handler_name(handler)},
                )
                raise

    async def dispatch_many(self, events: Iterable[DomainEvent]) -> None:
        """Dispatch events in order, stopping at the first failure."""
        for event in events:
            await self.dispatch(event)

    async def dispatch_pending(self, entity: EventSourcedMixin) -> None:
        """Drain the events collected on an entity and dispatch them.

        Events are removed from the entity before dispatching; on failure
        the surrounding unit of work is expected to be rolled back.
        """
        await self.dispatch_many(entity.pull_domain_events())

    def __len__(self) -> int:
        return len(self._registrations)

    def clear(self) -> None:
        """Remove all registrations (mainly for testing)."""
        self._registrations.clear()


__all__ = ["DomainEventDispatcher", "DomainEventHandler", "Handler"]
