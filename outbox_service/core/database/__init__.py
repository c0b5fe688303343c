"""Database primitives: declarative base, repository and exceptions."""

from outbox_service.core.database.base import Base, UUIDv7PKMixin, generate_uuid7
from outbox_service.core.database.exceptions import (
    DuplicateKeyError,
    InvalidTransitionError,
    NotFoundError,
    RepositoryError,
)
from outbox_service.core.database.repository import BaseRepository

__all__ = [
    "Base",
    "BaseRepository",
    "DuplicateKeyError",
    "InvalidTransitionError",
    "NotFoundError",
    "RepositoryError",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
