"""Failure dispatch engine.

Given the failure a handler raised, the message it was handling and the
handler's FailurePolicy, the engine classifies the failure and performs at
most one outbound action:

    DISCARDED      -> nothing (logged)
    SENT_TO_RETRY  -> RetryDispatcher.send_to_retry_or_dlq
    SENT_TO_DLQ    -> RetryDispatcher.send_to_dlq

The engine holds no mutable state; its collaborators are injected and
read-only, so one engine is shared by every consumer task.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rabbit_retry.core.exceptions import ConfigurationMissingError, PublishError

from .classifier import DispatchOutcome, classify_detailed
from .metrics import publish_errors_total, record_outcome
from .registry import PolicyRegistry

if TYPE_CHECKING:
    from rabbit_retry.core.settings import EventProperties

    from .dispatcher import RetryDispatcher
    from .policy import FailurePolicy
    from .registry import EventRegistry

logger = logging.getLogger(__name__)

# Longest exception text copied into log records
MAX_LOGGED_ERROR_LENGTH = 200


class DispatchEngine:
    """Decides and executes what happens to a message after a handler failure.

    Example:
        engine = DispatchEngine(
            dispatcher=RabbitRetryDispatcher(broker),
            events=EventRegistry.from_settings(),
        )
        outcome = await engine.dispatch(policy, exc, msg)

    Attributes:
        dispatcher: Publishes to retry and dead letter queues.
        events: Event configuration lookup.
        policies: Handler policy lookup.
    """

    def __init__(
        self,
        dispatcher: RetryDispatcher,
        events: EventRegistry,
        policies: PolicyRegistry | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            dispatcher: Retry/DLQ publisher.
            events: Event configuration registry.
            policies: Handler policy registry (a fresh one if omitted).
        """
        self.dispatcher = dispatcher
        self.events = events
        self.policies = policies if policies is not None else PolicyRegistry()

    async def handle_failure(
        self,
        handler_id: str,
        failure: BaseException,
        message: Any,
    ) -> DispatchOutcome:
        """Resolve the handler's policy, then dispatch the failed message.

        Args:
            handler_id: Identifier the handler's policy was registered under.
            failure: Exception raised by the handler.
            message: The message the handler was processing.

        Returns:
            The dispatch outcome.

        Raises:
            ConfigurationMissingError: Missing policy or event configuration.
            PublishError: The retry/DLQ publish failed.
        """
        try:
            policy = self.policies.resolve(handler_id)
        except ConfigurationMissingError:
            logger.error(
                "No failure policy registered for handler %s",
                handler_id,
                extra={"handler": handler_id, "failure_kind": type(failure).__name__},
            )
            raise
        return await self.dispatch(policy, failure, message, handler_id=handler_id)

    async def dispatch(
        self,
        policy: FailurePolicy,
        failure: BaseException,
        message: Any,
        *,
        handler_id: str | None = None,
    ) -> DispatchOutcome:
        """Classify a failure under ``policy`` and perform the matching action.

        Exactly one of discard, retry or dead-letter happens per call.

        Args:
            policy: Policy governing the failed handler.
            failure: Exception raised by the handler.
            message: The message the handler was processing.
            handler_id: Handler identifier, for log context only.

        Returns:
            The dispatch outcome.

        Raises:
            ConfigurationMissingError: The policy's event has no configuration.
            PublishError: The retry/DLQ publish failed.
        """
        failure_kind = type(failure).__name__
        log_context = {
            "event": policy.event,
            "handler": handler_id,
            "failure_kind": failure_kind,
            "message_id": getattr(message, "message_id", None),
        }

        logger.info(
            "Handler raised %s: %s",
            failure_kind,
            str(failure)[:MAX_LOGGED_ERROR_LENGTH],
            extra=log_context,
        )

        classification = classify_detailed(policy, failure)
        outcome = classification.outcome

        if outcome is DispatchOutcome.DISCARDED:
            if classification.unclassified:
                logger.error(
                    "Discarding message after unclassified %s: %s",
                    failure_kind,
                    str(failure)[:MAX_LOGGED_ERROR_LENGTH],
                    extra={**log_context, "outcome": outcome.value},
                )
                record_outcome(policy.event, "discarded_unclassified", failure)
            else:
                logger.warning(
                    "Exception %s was configured to be discarded",
                    failure_kind,
                    extra={**log_context, "outcome": outcome.value, "bucket": classification.bucket.value},
                )
                record_outcome(policy.event, outcome.value, failure)
            return outcome

        properties = self._resolve_properties(policy.event, log_context)

        logger.info(
            "Dispatching failed message: %s",
            outcome.value,
            extra={**log_context, "outcome": outcome.value, "bucket": classification.bucket.value},
        )

        try:
            if outcome is DispatchOutcome.SENT_TO_RETRY:
                await self.dispatcher.send_to_retry_or_dlq(
                    message, properties, event=policy.event, failure=failure
                )
            else:
                await self.dispatcher.send_to_dlq(message, properties, event=policy.event, failure=failure)
        except PublishError as exc:
            self._log_publish_error(exc.destination, log_context, outcome)
            raise
        except Exception as exc:
            destination = properties.queue_retry if outcome is DispatchOutcome.SENT_TO_RETRY else properties.queue_dlq
            self._log_publish_error(destination, log_context, outcome)
            raise PublishError(
                event_name=policy.event,
                destination=destination,
                failure_kind=failure_kind,
                message_id=log_context["message_id"],
                extra={"error": str(exc)},
            ) from exc

        record_outcome(policy.event, outcome.value, failure)
        return outcome

    def _resolve_properties(self, event_name: str, log_context: dict[str, Any]) -> EventProperties:
        try:
            return self.events.resolve(event_name)
        except ConfigurationMissingError:
            logger.error(
                "No configuration registered for event %s, message cannot be dispatched",
                event_name,
                extra=log_context,
            )
            raise

    def _log_publish_error(
        self,
        destination: str,
        log_context: dict[str, Any],
        outcome: DispatchOutcome,
    ) -> None:
        logger.exception(
            "Failed to publish message to %s",
            destination,
            extra={**log_context, "outcome": outcome.value, "destination": destination},
        )
        publish_errors_total.labels(event=log_context["event"], destination=destination).inc()


__all__ = ["DispatchEngine"]
