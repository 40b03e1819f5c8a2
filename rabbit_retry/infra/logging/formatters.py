"""JSON Lines formatter for dispatch logs."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord has; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

DEFAULT_FIELDS = {"level": "levelname", "logger": "name", "message": "message"}


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object on a single line.

    Context passed with ``extra={...}`` (event, handler, failure_kind,
    outcome, destination...) becomes top-level keys, so dispatch decisions can
    be filtered directly in the log store. When the handler runs inside an
    OpenTelemetry span the trace and span ids are added.

    Example output:
        {"level": "WARNING", "logger": "rabbit_retry.infra.messaging.dlq.engine", "message": "Exception KeyError was configured to be discarded", "event": "user-created", "failure_kind": "KeyError", "timestamp": "2025-01-01T00:00:00.123Z"}
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        """Create the formatter.

        Args:
            fmt_keys: Output key -> LogRecord attribute, DEFAULT_FIELDS when omitted.
            static: Constant fields added to every record, e.g. ``{"service": "billing"}``.
        """
        super().__init__()
        self.fmt_keys = fmt_keys or dict(DEFAULT_FIELDS)
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict[str, Any] = {key: getattr(record, attr, None) for key, attr in self.fmt_keys.items()}
        data["timestamp"] = _utc_timestamp(record.created)
        data.update(_trace_fields())

        if record.exc_info:
            data["exception"] = _one_line(self.formatException(record.exc_info))
        if record.stack_info:
            data["stack_trace"] = _one_line(record.stack_info)

        data.update(self.static)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in data:
                data[key] = value

        return json.dumps(data, ensure_ascii=False, default=str)


def _utc_timestamp(created: float) -> str:
    moment = datetime.fromtimestamp(created, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _trace_fields() -> dict[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return {}
    return {"trace_id": format(context.trace_id, "032x"), "span_id": format(context.span_id, "016x")}


def _one_line(text: str) -> str:
    return text.replace("\n", "\\n")
