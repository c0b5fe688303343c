"""SQLAlchemy declarative base and the UUID v7 primary key.

Examples:
    class OutboxMessage(Base, UUIDv7PKMixin):
        __tablename__ = "outbox_messages"
        event_id: Mapped[str] = mapped_column(String(64), unique=True)
"""

from __future__ import annotations

import os
import time
import uuid

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Constraint names must match the ones in alembic/versions
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base; every model declares ``__tablename__`` explicitly."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def generate_uuid7() -> uuid.UUID:
    """Return a UUID v7: 48-bit millisecond timestamp followed by random bits.

    Used for outbox primary keys and default event ids, so both sort in
    creation order.
    """
    unix_ms = time.time_ns() // 1_000_000
    rand = bytearray(os.urandom(10))
    rand[0] = (rand[0] & 0x0F) | 0x70  # version 7
    rand[2] = (rand[2] & 0x3F) | 0x80  # RFC 4122 variant
    return uuid.UUID(bytes=unix_ms.to_bytes(6, "big") + bytes(rand))


class UUIDv7PKMixin:
    """Adds a time-sortable ``id`` primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid7,
        comment="UUID v7 primary key (time-sortable)",
    )


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
