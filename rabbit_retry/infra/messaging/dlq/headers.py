"""Redelivery history carried in RabbitMQ message headers.

RabbitMQ appends an ``x-death`` entry every time a message is dead-lettered.
A retried message expires in the retry queue and is dead-lettered back to the
main queue, so the ``count`` of the x-death entry for the retry queue is the
number of retries already performed.

Design decisions:
- Frozen dataclasses with slots, safe to share between tasks
- Malformed or missing headers count as "no history" rather than failing
- Exception details written to headers are truncated to prevent header bloat
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

# ─────────────────────────────────────────────────────
# Header key constants
# ─────────────────────────────────────────────────────
X_DEATH_HEADER: Final[str] = "x-death"
DLQ_REASON_HEADER: Final[str] = "x-dlq-reason"
EXCEPTION_TYPE_HEADER: Final[str] = "x-exception-type"
EXCEPTION_MESSAGE_HEADER: Final[str] = "x-exception-message"

# Maximum error message length to prevent header bloat
MAX_ERROR_LENGTH: Final[int] = 500


@dataclass(frozen=True, slots=True)
class DeathRecord:
    """One entry of the ``x-death`` header.

    Attributes:
        queue: Queue the message was dead-lettered from.
        reason: Why it was dead-lettered (expired, rejected, maxlen...).
        count: How many times this (queue, reason) pair happened.
        exchange: Exchange the message was published to before dying.
    """

    queue: str
    reason: str
    count: int
    exchange: str = ""

    @classmethod
    def from_header_entry(cls, entry: Any) -> DeathRecord | None:
        """Parse one x-death table, returning None when it is unusable."""
        if not isinstance(entry, dict):
            return None
        return cls(
            queue=_as_str(entry.get("queue")),
            reason=_as_str(entry.get("reason")),
            count=_safe_int(entry.get("count"), default=0),
            exchange=_as_str(entry.get("exchange")),
        )


@dataclass(frozen=True, slots=True)
class DeathHistory:
    """All ``x-death`` records of a message.

    Example:
        history = DeathHistory.from_headers(msg.headers)
        attempts = history.count_for(properties.queue_retry)
        if attempts >= properties.max_retries_attempts:
            await dispatcher.send_to_dlq(msg, properties)
    """

    records: tuple[DeathRecord, ...] = ()

    @classmethod
    def from_headers(cls, headers: dict[str, Any] | None) -> DeathHistory:
        """Extract death history from message headers.

        Args:
            headers: Message headers dictionary (may be None).

        Returns:
            DeathHistory, empty for messages that never died.
        """
        if not headers:
            return cls()

        raw = headers.get(X_DEATH_HEADER)
        if not isinstance(raw, list | tuple):
            return cls()

        records = tuple(
            record for record in (DeathRecord.from_header_entry(entry) for entry in raw) if record is not None
        )
        return cls(records=records)

    def count_for(self, queue: str) -> int:
        """Number of times the message was dead-lettered from ``queue``."""
        return sum(record.count for record in self.records if record.queue == queue)

    @property
    def total(self) -> int:
        """Total number of deaths across all queues."""
        return sum(record.count for record in self.records)


def failure_headers(reason: str | None, failure: BaseException | None) -> dict[str, str]:
    """Headers describing why a message was routed to the DLQ.

    Args:
        reason: DLQ routing reason (e.g., "direct", "max_retries_exceeded").
        failure: Handler exception, when known.

    Returns:
        Header dictionary (all string values for AMQP compatibility).
    """
    headers: dict[str, str] = {}
    if reason:
        headers[DLQ_REASON_HEADER] = reason
    if failure is not None:
        headers[EXCEPTION_TYPE_HEADER] = type(failure).__name__
        headers[EXCEPTION_MESSAGE_HEADER] = str(failure)[:MAX_ERROR_LENGTH]
    return headers


# ─────────────────────────────────────────────────────
# Helper functions
# ─────────────────────────────────────────────────────


def _safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


__all__ = [
    "DLQ_REASON_HEADER",
    "EXCEPTION_MESSAGE_HEADER",
    "EXCEPTION_TYPE_HEADER",
    "MAX_ERROR_LENGTH",
    "X_DEATH_HEADER",
    "DeathHistory",
    "DeathRecord",
    "failure_headers",
]
