"""Prometheus registry shared by all rabbit_retry metrics."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, generate_latest

# Custom registry keeps library metrics apart from the host application's
REGISTRY = CollectorRegistry()


def render_metrics() -> bytes:
    """Render all registered metrics in the Prometheus text format."""
    return generate_latest(REGISTRY)
