"""RabbitMQ messaging: failure policies, retry and dead-letter dispatching."""

from __future__ import annotations

from rabbit_retry.infra.messaging.dlq import (
    DispatchEngine,
    DispatchOutcome,
    EventRegistry,
    FailurePolicy,
    MatchMode,
    PolicyRegistry,
    RabbitRetryDispatcher,
    RetryDlqGuard,
)

__all__ = [
    "DispatchEngine",
    "DispatchOutcome",
    "EventRegistry",
    "FailurePolicy",
    "MatchMode",
    "PolicyRegistry",
    "RabbitRetryDispatcher",
    "RetryDlqGuard",
]
