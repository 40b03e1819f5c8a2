"""Read-only lookups used while dispatching failures.

- PolicyRegistry: handler identifier -> FailurePolicy
- EventRegistry: event name -> EventProperties

Both are populated once at startup and then only read. Policy registration
takes a lock so handlers decorated from several import threads cannot race,
lookups never do.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from rabbit_retry.core.exceptions import ConfigurationMissingError

if TYPE_CHECKING:
    from rabbit_retry.core.settings import EventProperties, EventSettings

    from .policy import FailurePolicy

logger = logging.getLogger(__name__)


class PolicyRegistry:
    """Maps handler identifiers to their failure policy.

    Example:
        policies = PolicyRegistry()
        policies.register("consumers.users.on_created", FailurePolicy("user-created"))
        policy = policies.resolve("consumers.users.on_created")
    """

    def __init__(self) -> None:
        self._policies: dict[str, FailurePolicy] = {}
        self._lock = threading.Lock()

    def register(self, handler_id: str, policy: FailurePolicy) -> None:
        """Attach a policy to a handler.

        Raises:
            ValueError: If the handler identifier is blank or already registered.
        """
        if not handler_id:
            msg = "handler_id must be a non-empty string"
            raise ValueError(msg)

        with self._lock:
            if handler_id in self._policies:
                msg = f"A failure policy is already registered for handler {handler_id!r}"
                raise ValueError(msg)
            self._policies[handler_id] = policy

        logger.debug(
            "Registered failure policy",
            extra={"handler": handler_id, "policy": policy.describe()},
        )

    def resolve(self, handler_id: str) -> FailurePolicy:
        """Return the policy attached to a handler.

        Raises:
            ConfigurationMissingError: If no policy was registered for the handler.
        """
        try:
            return self._policies[handler_id]
        except KeyError:
            raise ConfigurationMissingError(resource="policy", key=handler_id) from None

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._policies))


class EventRegistry:
    """Read-only event name -> EventProperties lookup.

    Built once from settings (or any mapping) and injected into the
    DispatchEngine; there is no mutation API.

    Example:
        events = EventRegistry.from_settings()
        properties = events.resolve("user-created")
    """

    def __init__(self, events: Mapping[str, EventProperties]) -> None:
        self._events: Mapping[str, EventProperties] = MappingProxyType(dict(events))

    @classmethod
    def from_settings(cls, settings: EventSettings | None = None) -> EventRegistry:
        """Build the registry from EventSettings (cached settings by default)."""
        if settings is None:
            from rabbit_retry.core.settings import get_event_settings

            settings = get_event_settings()
        return cls(settings.events)

    def resolve(self, event_name: str) -> EventProperties:
        """Return the configuration registered for an event.

        Raises:
            ConfigurationMissingError: If the event has no configuration.
        """
        try:
            return self._events[event_name]
        except KeyError:
            raise ConfigurationMissingError(resource="event", key=event_name) from None

    def names(self) -> tuple[str, ...]:
        """Registered event names, sorted."""
        return tuple(sorted(self._events))

    def __contains__(self, event_name: object) -> bool:
        return event_name in self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())


__all__ = ["EventRegistry", "PolicyRegistry"]
