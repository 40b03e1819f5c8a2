"""Retry delay calculation.

The delay is applied as a per-message expiration on the retry queue; when it
runs out RabbitMQ dead-letters the message back to the main queue.

    ttl(attempt) = ttl_retry_message * ttl_multiply ** attempt

capped by ``max_ttl_retry_message`` when set. With the default multiplier of
1.0 every retry waits the same base delay.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rabbit_retry.core.settings import EventProperties


def calculate_retry_ttl(properties: EventProperties, attempt: int) -> int:
    """Calculate the retry queue TTL for a given attempt.

    Args:
        properties: Event configuration with base TTL, multiplier and cap.
        attempt: Retries already performed (0-based).

    Returns:
        Delay in milliseconds.

    Example:
        properties = EventProperties(
            exchange="accounts", queue="users",
            ttl_retry_message=1000, ttl_multiply=2.0,
        )
        calculate_retry_ttl(properties, 0)  # 1000
        calculate_retry_ttl(properties, 1)  # 2000
        calculate_retry_ttl(properties, 2)  # 4000
    """
    attempt = max(attempt, 0)
    delay = properties.ttl_retry_message * (properties.ttl_multiply**attempt)

    if properties.max_ttl_retry_message is not None:
        delay = min(delay, properties.max_ttl_retry_message)

    return int(delay)


def retry_schedule(properties: EventProperties, attempts: int | None = None) -> list[int]:
    """TTLs for consecutive attempts, defaults to every allowed retry."""
    count = properties.max_retries_attempts if attempts is None else attempts
    return [calculate_retry_ttl(properties, attempt) for attempt in range(count)]


__all__ = ["calculate_retry_ttl", "retry_schedule"]
