"""Logging infrastructure.

Structured JSONL logging on top of the standard library:

    from rabbit_retry.infra.logging import setup_logging
    import logging

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Consumer started", extra={"event": "user-created"})
"""

from rabbit_retry.infra.logging.config import configure_logging, setup_logging, shutdown
from rabbit_retry.infra.logging.formatters import JSONFormatter

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "setup_logging",
    "shutdown",
]
