"""Exception classes for the outbox service.

Storage-layer errors live in ``outbox_service.core.database.exceptions``;
this module holds the errors raised by configuration and event handling.
"""

from __future__ import annotations

from typing import Any


class OutboxServiceError(Exception):
    """Base exception for the outbox service.

    Attributes:
        message: Human-readable error message.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(OutboxServiceError):
    """Invalid or missing configuration detected at startup.

    Raised eagerly so that a misconfigured service fails to start instead
    of failing later at runtime.
    """


class EventReconstructionError(OutboxServiceError):
    """A stored payload could not be turned back into a typed event.

    Covers unknown event types, corrupt JSON and payloads that no longer
    match the registered schema.

    Attributes:
        event_type: The discriminator of the record that failed.
    """

    def __init__(
        self,
        message: str,
        event_type: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.event_type = event_type
        super().__init__(message, details={"event_type": event_type, **(details or {})})


__all__ = [
    "ConfigurationError",
    "EventReconstructionError",
    "OutboxServiceError",
]
