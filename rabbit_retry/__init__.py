"""Failure policies for RabbitMQ consumers.

Declare per-handler policies that decide whether a failed message is
discarded, sent to a delayed retry queue, or routed to its dead letter queue.
"""

__version__ = "0.1.0"
