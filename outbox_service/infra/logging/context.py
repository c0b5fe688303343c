"""Per-task log context.

Fields set here (``job_id``, ``tick_id``, ``event_id``, ...) are copied onto
every log record emitted by the same asyncio task, so the relay only has
to set its tick identity once.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**fields: Any) -> None:
    """Add or replace fields in the current task's log context.

    Example:
        ```python
        set_log_context(job_id="outbox_relay", tick_id=str(generate_uuid7()))
        logger.info("Relaying outbox records")  # carries job_id and tick_id
        ```
    """
    _log_context.set({**_log_context.get(), **fields})


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current task's log context."""
    return dict(_log_context.get())


def clear_log_context() -> None:
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    """Drop the given fields; unknown keys are ignored."""
    _log_context.set({k: v for k, v in _log_context.get().items() if k not in keys})


class ContextInjectingFilter(logging.Filter):
    """Copy log context fields onto each record passing through.

    Attached to the root queue handler. Attributes already present on the
    record (for example from ``extra=``) win over context values.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


__all__ = [
    "ContextInjectingFilter",
    "clear_log_context",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
]
