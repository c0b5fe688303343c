"""Event base classes.

Two kinds of events flow through the service:

- ``DomainEvent``: an in-process notification raised by domain code and
  fanned out to local handlers inside the same unit of work.
- ``IntegrationEvent``: a serializable message delivered to other services
  through the message bus. Delivery failures are captured in the outbox and
  retried by the relay job.

Key features of integration events:
- Event versioning for schema evolution
- Correlation IDs for distributed tracing
- Automatic timestamp and ID generation
- Message headers generation for RabbitMQ publishing
- Sensitive field masking on the wire (see ``core.events.security``)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field

from outbox_service.core.database.base import generate_uuid7
from outbox_service.core.events.security import mask_sensitive_fields


def _generate_event_id() -> str:
    return str(generate_uuid7())


class DomainEvent(BaseModel):
    """Base class for in-process domain events.

    Domain events carry no transport concerns. They are dispatched to local
    handlers by ``DomainEventDispatcher`` and never stored in the outbox.

    Example:
        class OrderPlaced(DomainEvent):
            order_id: str
    """

    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event occurred (UTC)",
    )

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class IntegrationEvent(BaseModel):
    """Base class for events published to other services.

    Subclasses must define:
    - event_type: ClassVar[str] - Stable type discriminator (e.g., "order.placed")
    - event_version: ClassVar[int] - Schema version for evolution (default: 1)

    Example:
        class OrderPlacedIntegrationEvent(IntegrationEvent):
            event_type: ClassVar[str] = "order.placed"
            event_version: ClassVar[int] = 1

            order_id: str
            total: Decimal

    Attributes:
        event_id: Unique identifier for this event instance (UUID v7)
        created_at: When the event was created (UTC)
        correlation_id: ID linking related events across services
        metadata: Additional context (user_id, request_id, etc.)
    """

    event_type: ClassVar[str] = "integration.event"
    event_version: ClassVar[int] = 1

    event_id: str = Field(
        default_factory=_generate_event_id,
        min_length=1,
        max_length=64,
        description="Unique event identifier (UUID v7 for time-ordering)",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Event creation timestamp in UTC",
    )
    correlation_id: str | None = Field(
        default=None,
        max_length=64,
        description="Correlation ID for distributed tracing",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event metadata",
    )

    model_config = ConfigDict(
        frozen=True,  # Events are immutable
        extra="forbid",  # Strict schema validation
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate subclass has required class variables."""
        super().__init_subclass__(**kwargs)
        # Abstract intermediate hierarchies may opt out with a trailing "Base"
        if cls.__name__.endswith("Base"):
            return
        if not getattr(cls, "event_type", None) or cls.event_type == "integration.event":
            msg = f"{cls.__name__} must define 'event_type' class variable"
            raise TypeError(msg)
        if not isinstance(cls.event_version, int) or cls.event_version < 1:
            msg = f"{cls.__name__}.event_version must be a positive integer"
            raise TypeError(msg)

    @classmethod
    def get_event_type(cls) -> str:
        """Get the event type identifier."""
        return cls.event_type

    @classmethod
    def get_event_version(cls) -> int:
        """Get the event schema version."""
        return cls.event_version

    @property
    def routing_key(self) -> str:
        """Routing key used on the topic exchange."""
        return self.event_type

    def to_outbox_payload(self) -> str:
        """Serialize the full, unmasked event to JSON text for storage."""
        return self.model_dump_json()

    def to_wire_payload(self) -> dict[str, Any]:
        """Serialize the event for the message bus with sensitive fields masked."""
        return mask_sensitive_fields(self)

    def headers(self) -> dict[str, str]:
        """Generate message headers for broker publishing."""
        headers = {
            "x-event-type": self.event_type,
            "x-event-version": str(self.event_version),
            "x-event-id": self.event_id,
        }
        if self.correlation_id:
            headers["x-correlation-id"] = self.correlation_id
        return headers

    def with_correlation(self, correlation_id: str) -> Self:
        """Return a copy of the event carrying the given correlation id."""
        return self.model_copy(update={"correlation_id": correlation_id})


__all__ = ["DomainEvent", "IntegrationEvent"]
