"""Transactional outbox for integration events.

The relay job lives in ``outbox_service.infra.events.outbox.relay`` and is
imported from there directly.
"""

from __future__ import annotations

from .models import ALLOWED_TRANSITIONS, OutboxMessage, OutboxMessageState
from .repository import OutboxRepository

__all__ = ["ALLOWED_TRANSITIONS", "OutboxMessage", "OutboxMessageState", "OutboxRepository"]
