"""Storage errors raised by repositories.

These always propagate: a failed outbox write must never be mistaken for
a deferred publish.
"""
from __future__ import annotations

from typing import Any

from outbox_service.core.exceptions import OutboxServiceError


def _format_key(identifier: dict[str, Any]) -> str:
    return ", ".join(f"{k}={v!r}" for k, v in identifier.items())


class RepositoryError(OutboxServiceError):
    """Base class for storage failures."""


class NotFoundError(RepositoryError):
    """No row matched the lookup key.

    Attributes:
        model_name: Model that was queried
        identifier: Column/value pairs that were searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        self.model_name = model_name
        self.identifier = identifier
        super().__init__(
            f"{model_name} not found with {_format_key(identifier)}",
            details={"model": model_name, **identifier},
        )


class DuplicateKeyError(RepositoryError):
    """A row with the same unique key already exists.

    Raised both by the repository's existence check and when the database
    rejects an insert on a unique constraint.
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        self.model_name = model_name
        self.identifier = identifier
        super().__init__(
            f"{model_name} already exists with {_format_key(identifier)}",
            details={"model": model_name, **identifier},
        )


class InvalidTransitionError(RepositoryError):
    """A state change would move a record backward or out of a terminal state."""

    def __init__(self, model_name: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"{model_name} cannot move from {current} to {requested}",
            details={"model": model_name, "current": current, "requested": requested},
        )


__all__ = [
    "DuplicateKeyError",
    "InvalidTransitionError",
    "NotFoundError",
    "RepositoryError",
]
