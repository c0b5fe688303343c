"""Message bus integration (RabbitMQ via FastStream)."""

from __future__ import annotations

from .bus import (
    MessageBus,
    MessageBusUnavailableError,
    RabbitMessageBus,
    UnavailableMessageBus,
    create_rabbit_broker,
)

__all__ = [
    "MessageBus",
    "MessageBusUnavailableError",
    "RabbitMessageBus",
    "UnavailableMessageBus",
    "create_rabbit_broker",
]
