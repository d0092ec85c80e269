"""
Structured Logging

One JSON object per line, carrying the trace and span ids of the active
span so dispatcher logs can be joined with traces. Fields passed through
`extra=` (event_id, event_type, retry_count, permanently_failed, ...)
become top-level keys.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from .tracing import current_span_ids, get_trace_id

# Attributes every LogRecord has; anything else came from extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "trace_id",
}

_NOISY_LOGGERS = ("aiokafka", "aiosqlite", "asyncpg", "opentelemetry")

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(trace_id)s] %(message)s"


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """JSON formatter; adds `service` when constructed with a service name."""

    def __init__(self, service_name: Optional[str] = None):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        trace_id, span_id = current_span_ids()
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)

        entry = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": trace_id,
            "span_id": span_id,
        }
        if self.service_name:
            entry["service"] = self.service_name
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, _jsonable(value))
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(entry)


class TraceContextFilter(logging.Filter):
    """Sets record.trace_id for PLAIN_FORMAT ("no-trace" outside a span)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id() or "no-trace"
        return True


def configure_logging(
    level: str = "INFO",
    structured: bool = True,
    service_name: str = "order-outbox"
) -> None:
    """Route all logging to stdout, as JSON or plain text."""
    level = level.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter(service_name) if structured else logging.Formatter(PLAIN_FORMAT))
    handler.addFilter(TraceContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured for {service_name}: level={level} structured={structured}")
