"""Custom exception classes for failure dispatching."""

from __future__ import annotations

from typing import Any


class RetryDlqException(Exception):
    """Base exception for retry/DLQ dispatching.

    All custom exceptions should inherit from this class.

    Attributes:
        detail: Human-readable error message.
        type: Error type identifier (stable, safe to use in log queries).
        extra: Additional context-specific information about the error.

    Example:
            raise RetryDlqException(
            detail="Something went wrong while dispatching",
            type="dispatch-error",
            extra={"event": "user-created"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "retry-dlq-error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            detail: Human-readable error message.
            type: Error type identifier.
            extra: Additional context about the error.
        """
        self.detail = detail
        self.type = type
        self.extra = extra or {}
        super().__init__(detail)


class ConfigurationMissingError(RetryDlqException):
    """Raised when a handler policy or an event configuration is not registered.

    This is fatal for the message being dispatched: it is neither retried nor
    silently dropped, the error is surfaced to the caller.

    Example:
            raise ConfigurationMissingError(resource="event", key="user-created")
    """

    def __init__(
        self,
        resource: str,
        key: str,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration missing exception.

        Args:
            resource: What is missing ("policy" or "event").
            key: Lookup key that failed to resolve.
            extra: Additional context about the error.
        """
        self.resource = resource
        self.key = key
        super().__init__(
            detail=f"No {resource} configuration registered for {key!r}",
            type=f"{resource}-configuration-missing",
            extra={resource: key, **(extra or {})},
        )


class PublishError(RetryDlqException):
    """Raised when a message could not be published to its retry or DLQ destination.

    Chained to the underlying broker error when there is one, so the original
    traceback is kept. Also raised when there is no consumed message to publish.
    """

    def __init__(
        self,
        event_name: str,
        destination: str,
        failure_kind: str | None = None,
        message_id: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize publish error.

        Args:
            event_name: Event whose configuration was used for publishing.
            destination: Routing key the publish targeted.
            failure_kind: Class name of the handler failure, when known.
            message_id: Identifier of the message being published.
            extra: Additional context about the error.
        """
        self.event_name = event_name
        self.destination = destination
        self.failure_kind = failure_kind
        self.message_id = message_id
        super().__init__(
            detail=f"Failed to publish message for event {event_name!r} to {destination!r}",
            type="publish-error",
            extra={
                "event": event_name,
                "destination": destination,
                "failure_kind": failure_kind,
                "message_id": message_id,
                **(extra or {}),
            },
        )


__all__ = [
    "ConfigurationMissingError",
    "PublishError",
    "RetryDlqException",
]
