"""Failure policies and retry/DLQ dispatching for RabbitMQ consumers.

This package decides what happens to a consumed message when its handler
raises:
- Declarative, immutable per-handler policies (FailurePolicy)
- Deterministic classification with fixed precedence (classify)
- Dispatch to retry queues with growing TTL, or to the DLQ (DispatchEngine)
- A decorator guarding handlers (RetryDlqGuard)
- Prometheus metrics for observability

Example:
    from rabbit_retry.infra.messaging.dlq import (
        DispatchEngine,
        EventRegistry,
        RabbitRetryDispatcher,
        RetryDlqGuard,
    )

    engine = DispatchEngine(RabbitRetryDispatcher(broker), EventRegistry.from_settings())
    guard = RetryDlqGuard(engine, context=broker.context)

    @broker.subscriber("accounts.user-created")
    @guard.enable("user-created", retry_when=ConnectionError)
    async def on_user_created(msg: RabbitMessage) -> None:
        ...
"""

from __future__ import annotations

from .calculator import calculate_retry_ttl, retry_schedule
from .classifier import Classification, DispatchOutcome, MatchedBucket, classify, classify_detailed, matches
from .dispatcher import RabbitRetryDispatcher, RetryDispatcher
from .engine import DispatchEngine
from .guard import RetryDlqGuard, handler_identifier
from .headers import DeathHistory, DeathRecord
from .policy import ANY_FAILURE, FailureKind, FailurePolicy, MatchMode
from .registry import EventRegistry, PolicyRegistry

__all__ = [
    "ANY_FAILURE",
    "Classification",
    "DeathHistory",
    "DeathRecord",
    "DispatchEngine",
    "DispatchOutcome",
    "EventRegistry",
    "FailureKind",
    "FailurePolicy",
    "MatchMode",
    "MatchedBucket",
    "PolicyRegistry",
    "RabbitRetryDispatcher",
    "RetryDispatcher",
    "RetryDlqGuard",
    "calculate_retry_ttl",
    "classify",
    "classify_detailed",
    "handler_identifier",
    "matches",
    "retry_schedule",
]
