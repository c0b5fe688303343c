"""JSON Lines formatter with OpenTelemetry trace correlation."""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; anything else on a record is an extra field
_RESERVED_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}

_DEFAULT_KEYS = {"level": "levelname", "logger": "name", "message": "message"}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, ready for Loki or Elasticsearch.

    Each line carries a UTC millisecond timestamp, the mapped record
    attributes, static fields, the active trace/span ids and every extra
    field (``extra=`` arguments and log context).

    Example output:
        ```json
        {"level": "INFO", "logger": "outbox_service.infra.events.outbox.relay", "message": "Outbox relay tick finished", "timestamp": "2026-03-01T09:00:00.123Z", "service": "outbox-service", "job_id": "outbox_relay", "published": 3}
        ```
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        """Initialize JSON formatter.

        Args:
            fmt_keys: Output key -> LogRecord attribute.
            static: Fields added to every line (e.g. {"service": "outbox-service"}).
        """
        super().__init__()
        self.fmt_keys = fmt_keys or dict(_DEFAULT_KEYS)
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict[str, Any] = {key: getattr(record, attr, None) for key, attr in self.fmt_keys.items()}
        data["timestamp"] = (
            datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        data.update(self.static)

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            data["trace_id"] = format(span_context.trace_id, "032x")
            data["span_id"] = format(span_context.span_id, "016x")

        # Tracebacks stay on the record's single line
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info).replace("\n", "\\n")
        if record.stack_info:
            data["stack_trace"] = record.stack_info.replace("\n", "\\n")

        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS and key not in data:
                data[key] = value

        return json.dumps(data, ensure_ascii=False, default=str)


__all__ = ["JSONFormatter"]
