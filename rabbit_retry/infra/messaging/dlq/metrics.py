"""Prometheus metrics for failure dispatching.

All metrics use the shared REGISTRY from infra/metrics/prometheus.py.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from rabbit_retry.infra.metrics.prometheus import REGISTRY

failure_outcomes_total = Counter(
    "messaging_failure_outcomes_total",
    "Handler failures by dispatch outcome. "
    "outcome is discarded, discarded_unclassified, sent_to_retry or sent_to_dlq.",
    ["event", "outcome", "failure_kind"],
    registry=REGISTRY,
)

retry_published_total = Counter(
    "messaging_retry_published_total",
    "Messages published to a retry queue.",
    ["event"],
    registry=REGISTRY,
)

dlq_published_total = Counter(
    "messaging_dlq_published_total",
    "Messages published to a dead letter queue. "
    "reason is direct or max_retries_exceeded.",
    ["event", "reason"],
    registry=REGISTRY,
)

publish_errors_total = Counter(
    "messaging_publish_errors_total",
    "Failed publishes to retry or dead letter queues.",
    ["event", "destination"],
    registry=REGISTRY,
)

retry_ttl_seconds = Histogram(
    "messaging_retry_ttl_seconds",
    "Delay applied to retried messages, in seconds.",
    ["event"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0, 900.0, 3600.0),
    registry=REGISTRY,
)


def record_outcome(event: str, outcome: str, failure: BaseException) -> None:
    """Count one classified handler failure."""
    failure_outcomes_total.labels(
        event=event,
        outcome=outcome,
        failure_kind=type(failure).__name__,
    ).inc()


__all__ = [
    "dlq_published_total",
    "failure_outcomes_total",
    "publish_errors_total",
    "record_outcome",
    "retry_published_total",
    "retry_ttl_seconds",
]
