"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process. Event configuration in particular is read-only after startup.

Testing:
    In tests, clear the cache to force reload:
    get_event_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .events import EventSettings
from .logs import LoggingSettings
from .rabbit import RabbitSettings


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    """Get cached RabbitMQ settings.

    Returns:
        Validated and frozen RabbitSettings instance.
    """
    return RabbitSettings()


@lru_cache(maxsize=1)
def get_event_settings() -> EventSettings:
    """Get cached per-event settings.

    Returns:
        Validated and frozen EventSettings instance.
    """
    return EventSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Clear every cached settings instance."""
    get_rabbit_settings.cache_clear()
    get_event_settings.cache_clear()
    get_logging_settings.cache_clear()
