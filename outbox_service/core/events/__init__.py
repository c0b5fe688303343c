"""Domain and integration events.

Domain events are fanned out in-process by ``DomainEventDispatcher``.
Integration events are published to the message bus by
``IntegrationEventPublisher`` and parked in the outbox when delivery fails.
"""

from __future__ import annotations

from .aggregate import EventSourcedMixin
from .base import DomainEvent, IntegrationEvent
from .dispatcher import DomainEventDispatcher, DomainEventHandler
from .publisher import IntegrationEventPublisher, PublishOutcome
from .registry import EventRegistry, event_registry
from .security import SensitiveData, mask_sensitive_fields

__all__ = [
    "DomainEvent",
    "DomainEventDispatcher",
    "DomainEventHandler",
    "EventRegistry",
    "EventSourcedMixin",
    "IntegrationEvent",
    "IntegrationEventPublisher",
    "PublishOutcome",
    "SensitiveData",
    "event_registry",
    "mask_sensitive_fields",
]
