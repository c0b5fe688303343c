"""Deferred log messages for hot paths.

Repository and dispatcher debug messages are passed as lambdas; they are
built only when DEBUG is enabled for the logger.
"""
from __future__ import annotations

import logging
from typing import Any


def _resolve(value: Any) -> Any:
    return value() if callable(value) else value


class LazyLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that calls message and argument callables on demand.

    Example:
        ```python
        lazy = get_lazy_logger("repository.OutboxMessage")
        lazy.debug(lambda: f"db.get_by: {len(rows)} rows")
        ```
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        super().log(level, _resolve(msg), *(_resolve(arg) for arg in args), **kwargs)

    def debug(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)


def get_lazy_logger(name: str, **extra: Any) -> LazyLoggerAdapter:
    """Return a lazy adapter over ``logging.getLogger(name)``.

    Args:
        name: Logger name.
        **extra: Fields attached to every record from this adapter.
    """
    return LazyLoggerAdapter(logging.getLogger(name), extra)

__all__ = ["LazyLoggerAdapter", "get_lazy_logger"]
