"""OutboxMessage SQLAlchemy model for the transactional outbox pattern.

A record is written only when publishing an integration event failed. The
relay job later reconstructs the event from the stored payload and tries
again until it is delivered or the retry budget is exhausted.

State moves forward only:

    ReadyToSend -> SendToQueue -> Completed
         |              |
         +--------------+-------> Failed
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from outbox_service.core.database.base import Base, UUIDv7PKMixin
from outbox_service.core.database.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from outbox_service.core.events.base import IntegrationEvent

MAX_ERROR_LENGTH = 1000


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OutboxMessageState(str, Enum):
    """Delivery state of an outbox record."""

    READY_TO_SEND = "ReadyToSend"
    SEND_TO_QUEUE = "SendToQueue"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[OutboxMessageState, frozenset[OutboxMessageState]] = {
    OutboxMessageState.READY_TO_SEND: frozenset(
        {
            OutboxMessageState.SEND_TO_QUEUE,
            OutboxMessageState.COMPLETED,
            OutboxMessageState.FAILED,
        }
    ),
    OutboxMessageState.SEND_TO_QUEUE: frozenset(
        {OutboxMessageState.COMPLETED, OutboxMessageState.FAILED}
    ),
    OutboxMessageState.COMPLETED: frozenset(),
    OutboxMessageState.FAILED: frozenset(),
}


class OutboxMessage(Base, UUIDv7PKMixin):
    """Outbox table for integration events that could not be published.

    Attributes:
        id: UUID v7 primary key (time-sortable)
        event_id: Idempotency key of the event (unique)
        event_type: Event type discriminator (e.g., "order.placed")
        event_version: Schema version used to reconstruct the event
        payload: Unmasked JSON text of the event
        state: Delivery state
        attempts: Failed delivery or reconstruction attempts so far
        last_error: Last failure message (truncated)
        correlation_id: Distributed tracing correlation ID
        created_at: When the record was written
        modified_at: Last state transition or failure
    """

    __tablename__ = "outbox_messages"

    event_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Event idempotency key",
    )
    event_type: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        index=True,
        comment="Event type identifier",
    )
    event_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Event schema version",
    )
    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="JSON-serialized event data",
    )
    state: Mapped[OutboxMessageState] = mapped_column(
        SAEnum(
            OutboxMessageState,
            name="outbox_message_state",
            native_enum=False,
            length=20,
            values_callable=lambda states: [state.value for state in states],
        ),
        nullable=False,
        default=OutboxMessageState.READY_TO_SEND,
        comment="Delivery state",
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of failed attempts",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Last error message",
    )
    correlation_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Distributed tracing correlation ID",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        # Relay query: ready records oldest first
        Index("ix_outbox_messages_state_created_at", "state", "created_at"),
    )

    @classmethod
    def from_event(cls, event: IntegrationEvent) -> OutboxMessage:
        """Build a ReadyToSend record holding the unmasked event payload."""
        now = _utcnow()
        return cls(
            event_id=event.event_id,
            event_type=event.event_type,
            event_version=event.event_version,
            payload=event.to_outbox_payload(),
            state=OutboxMessageState.READY_TO_SEND,
            attempts=0,
            correlation_id=event.correlation_id,
            created_at=now,
            modified_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        """Completed and Failed records are never delivered again."""
        return OutboxMessageState(self.state).is_terminal

    def change_state(self, new_state: OutboxMessageState) -> None:
        """Move the record to ``new_state``.

        Re-applying the current state is a no-op.

        Raises:
            InvalidTransitionError: Backward move or move out of a terminal state.
        """
        current = OutboxMessageState(self.state)
        if new_state == current:
            return
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError("OutboxMessage", current.value, new_state.value)
        self.state = new_state
        self.modified_at = _utcnow()

    def register_failure(self, error: str) -> None:
        """Count a failed attempt and remember its message."""
        self.attempts = (self.attempts or 0) + 1
        self.last_error = error[:MAX_ERROR_LENGTH]
        self.modified_at = _utcnow()

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"OutboxMessage("
            f"event_id={self.event_id!r}, "
            f"event_type={self.event_type!r}, "
            f"state={OutboxMessageState(self.state).value}, "
            f"attempts={self.attempts}"
            f")"
        )


__all__ = ["ALLOWED_TRANSITIONS", "MAX_ERROR_LENGTH", "OutboxMessage", "OutboxMessageState"]
