"""Domain event collection on entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from outbox_service.core.events.base import DomainEvent


class EventSourcedMixin:
    """Collects domain events raised by an entity until they are dispatched.

    Works on plain classes and SQLAlchemy models alike; the pending list is
    kept in the instance ``__dict__`` and is never mapped.

    Example:
        class Order(Base, UUIDv7PKMixin, EventSourcedMixin):
            def place(self) -> None:
                self.raise_domain_event(OrderPlaced(order_id=str(self.id)))
    """

    def _pending_events(self) -> list[DomainEvent]:
        return self.__dict__.setdefault("_domain_events", [])

    def raise_domain_event(self, event: DomainEvent) -> None:
        self._pending_events().append(event)

    @property
    def domain_events(self) -> tuple[DomainEvent, ...]:
        """Events raised and not yet dispatched, oldest first."""
        return tuple(self._pending_events())

    def clear_domain_events(self) -> None:
        self._pending_events().clear()

    def pull_domain_events(self) -> list[DomainEvent]:
        """Return the pending events and clear them from the entity."""
        events = list(self._pending_events())
        self.clear_domain_events()
        return events


__all__ = ["EventSourcedMixin"]
