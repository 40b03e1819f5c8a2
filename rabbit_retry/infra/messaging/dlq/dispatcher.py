"""Publishing failed messages to retry and dead letter queues.

RetryDispatcher is the interface the DispatchEngine depends on.
RabbitRetryDispatcher implements it on top of a FastStream RabbitBroker:

- send_to_retry_or_dlq: publish to ``<queue>.retry`` with a per-message TTL,
  unless the message already used up ``max_retries_attempts`` in which case
  it goes to ``<queue>.dlq``
- send_to_dlq: publish to ``<queue>.dlq`` unconditionally

Both publish through the event's exchange with the retry/DLQ queue name as
routing key. The retry queue must dead-letter expired messages back to the
main queue; declaring that topology is left to the messaging setup.

Events whose EventProperties set their own host, credentials or virtual host
are published through a separate broker for that connection, created and
connected on first use and reused afterwards. All other events use the shared
broker.

Broker errors are raised as PublishError. Publishing is never retried here.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import timedelta
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from rabbit_retry.core.exceptions import PublishError

from .calculator import calculate_retry_ttl
from .headers import DeathHistory, failure_headers
from .metrics import dlq_published_total, retry_published_total, retry_ttl_seconds

if TYPE_CHECKING:
    from faststream.rabbit import RabbitBroker

    from rabbit_retry.core.settings import EventProperties, RabbitSettings

logger = logging.getLogger(__name__)

DLQ_REASON_DIRECT = "direct"
DLQ_REASON_MAX_RETRIES = "max_retries_exceeded"

BrokerFactory = Callable[[str], "RabbitBroker"]


@runtime_checkable
class RetryDispatcher(Protocol):
    """Sends a failed message on to its retry or dead letter destination."""

    async def send_to_retry_or_dlq(
        self,
        message: Any,
        properties: EventProperties,
        *,
        event: str = "",
        failure: BaseException | None = None,
    ) -> None:
        """Retry the message later, or dead-letter it once attempts run out."""
        ...

    async def send_to_dlq(
        self,
        message: Any,
        properties: EventProperties,
        *,
        event: str = "",
        failure: BaseException | None = None,
    ) -> None:
        """Dead-letter the message unconditionally."""
        ...


class RabbitRetryDispatcher:
    """RetryDispatcher backed by a FastStream RabbitBroker.

    Example:
        from faststream.rabbit import RabbitBroker

        settings = get_rabbit_settings()
        broker = RabbitBroker(**settings.to_broker_kwargs())
        dispatcher = RabbitRetryDispatcher.from_settings(broker, settings)
        engine = DispatchEngine(dispatcher, EventRegistry.from_settings())

    Attributes:
        broker: Connected FastStream broker used for publishing.
        publish_timeout: Optional publish timeout in seconds.
        connection_defaults: Settings per-event connection fields fall back to.
        broker_factory: Builds a broker for an event's own connection URI.
    """

    def __init__(
        self,
        broker: RabbitBroker,
        publish_timeout: float | None = None,
        *,
        connection_defaults: RabbitSettings | None = None,
        broker_factory: BrokerFactory | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            broker: FastStream RabbitBroker used to publish.
            publish_timeout: Optional publish timeout in seconds.
            connection_defaults: Shared connection settings, the cached
                RabbitSettings when omitted.
            broker_factory: Called with a connection URI when an event needs
                its own broker. Builds a RabbitBroker from the shared
                settings when omitted.
        """
        self.broker = broker
        self.publish_timeout = publish_timeout
        self.connection_defaults = connection_defaults
        self.broker_factory = broker_factory
        self._event_brokers: dict[str, RabbitBroker] = {}
        self._brokers_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        broker: RabbitBroker,
        settings: RabbitSettings | None = None,
        *,
        broker_factory: BrokerFactory | None = None,
    ) -> RabbitRetryDispatcher:
        """Build a dispatcher using the configured publish timeout and connection defaults."""
        if settings is None:
            from rabbit_retry.core.settings import get_rabbit_settings

            settings = get_rabbit_settings()
        return cls(
            broker,
            publish_timeout=settings.publish_timeout,
            connection_defaults=settings,
            broker_factory=broker_factory,
        )

    async def close(self) -> None:
        """Stop the per-event brokers this dispatcher created.

        The shared broker belongs to the caller and is left running.
        """
        async with self._brokers_lock:
            brokers = list(self._event_brokers.values())
            self._event_brokers.clear()

        for broker in brokers:
            await broker.stop()

    async def send_to_retry_or_dlq(
        self,
        message: Any,
        properties: EventProperties,
        *,
        event: str = "",
        failure: BaseException | None = None,
    ) -> None:
        """Publish to the retry queue, or to the DLQ once retries are exhausted.

        Args:
            message: The consumed RabbitMessage.
            properties: Event configuration.
            event: Event name, used for metrics and error context.
            failure: Handler exception, recorded in DLQ headers.

        Raises:
            PublishError: If the broker publish fails.
        """
        attempts = DeathHistory.from_headers(_headers_of(message)).count_for(properties.queue_retry)

        if attempts >= properties.max_retries_attempts:
            logger.warning(
                "Max retries (%d) exceeded, routing message to DLQ",
                properties.max_retries_attempts,
                extra={"event": event, "queue": properties.queue, "attempts": attempts},
            )
            await self._publish_to_dlq(message, properties, event, DLQ_REASON_MAX_RETRIES, failure)
            return

        ttl_ms = calculate_retry_ttl(properties, attempts)
        logger.info(
            "Scheduling retry %d/%d in %d ms",
            attempts + 1,
            properties.max_retries_attempts,
            ttl_ms,
            extra={"event": event, "queue": properties.queue_retry},
        )

        await self._publish(
            message,
            properties,
            routing_key=properties.queue_retry,
            event=event,
            extra_headers={},
            expiration=timedelta(milliseconds=ttl_ms),
            failure=failure,
        )
        retry_published_total.labels(event=event or properties.queue).inc()
        retry_ttl_seconds.labels(event=event or properties.queue).observe(ttl_ms / 1000.0)

    async def send_to_dlq(
        self,
        message: Any,
        properties: EventProperties,
        *,
        event: str = "",
        failure: BaseException | None = None,
    ) -> None:
        """Publish straight to the dead letter queue, ignoring attempt counts.

        Raises:
            PublishError: If the broker publish fails.
        """
        await self._publish_to_dlq(message, properties, event, DLQ_REASON_DIRECT, failure)

    async def _publish_to_dlq(
        self,
        message: Any,
        properties: EventProperties,
        event: str,
        reason: str,
        failure: BaseException | None,
    ) -> None:
        logger.info("Routing message to DLQ, reason: %s", reason, extra={"event": event, "queue": properties.queue_dlq})
        await self._publish(
            message,
            properties,
            routing_key=properties.queue_dlq,
            event=event,
            extra_headers=failure_headers(reason, failure),
            expiration=None,
            failure=failure,
        )
        dlq_published_total.labels(event=event or properties.queue, reason=reason).inc()

    async def _publish(
        self,
        message: Any,
        properties: EventProperties,
        *,
        routing_key: str,
        event: str,
        extra_headers: dict[str, str],
        expiration: timedelta | None,
        failure: BaseException | None,
    ) -> None:
        if message is None:
            raise PublishError(
                event_name=event or properties.queue,
                destination=routing_key,
                failure_kind=type(failure).__name__ if failure is not None else None,
                extra={"error": "no consumed message to republish"},
            )

        headers = {**_headers_of(message), **extra_headers}
        message_id = getattr(message, "message_id", None)

        try:
            broker = await self._broker_for(properties, event)
            await broker.publish(
                getattr(message, "body", b""),
                exchange=properties.exchange,
                routing_key=routing_key,
                headers=headers,
                message_id=message_id,
                correlation_id=getattr(message, "correlation_id", None),
                content_type=getattr(message, "content_type", None),
                expiration=expiration,
                persist=True,
                timeout=self.publish_timeout,
            )
        except Exception as exc:
            raise PublishError(
                event_name=event or properties.queue,
                destination=routing_key,
                failure_kind=type(failure).__name__ if failure is not None else None,
                message_id=message_id,
                extra={"error": str(exc)},
            ) from exc

    async def _broker_for(self, properties: EventProperties, event: str) -> RabbitBroker:
        if not properties.has_connection_override:
            return self.broker

        defaults = self.connection_defaults
        if defaults is None:
            from rabbit_retry.core.settings import get_rabbit_settings

            defaults = get_rabbit_settings()

        url = properties.connection_url(defaults)
        if url == defaults.url:
            return self.broker

        async with self._brokers_lock:
            broker = self._event_brokers.get(url)
            if broker is None:
                logger.info(
                    "Connecting event broker %s",
                    properties.connection_url(defaults, mask_password=True),
                    extra={"event": event},
                )
                factory = self.broker_factory or _default_broker_factory(defaults)
                broker = factory(url)
                await broker.connect()
                self._event_brokers[url] = broker
        return broker


def _default_broker_factory(defaults: RabbitSettings) -> BrokerFactory:
    from faststream.rabbit import RabbitBroker

    def build(url: str) -> RabbitBroker:
        return RabbitBroker(**defaults.to_broker_kwargs(url))

    return build


def _headers_of(message: Any) -> dict[str, Any]:
    headers = getattr(message, "headers", None)
    return dict(headers) if headers else {}


__all__ = [
    "DLQ_REASON_DIRECT",
    "DLQ_REASON_MAX_RETRIES",
    "RabbitRetryDispatcher",
    "RetryDispatcher",
]
