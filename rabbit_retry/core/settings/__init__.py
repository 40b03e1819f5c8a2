"""Modular Pydantic Settings v2 configuration.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (conf/rabbit.yaml, conf/events.yaml, conf/logging.yaml)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .events import EventProperties, EventSettings
from .loader import (
    clear_settings_cache,
    get_event_settings,
    get_logging_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .rabbit import RabbitSettings

__all__ = [
    "EventProperties",
    "EventSettings",
    "LoggingSettings",
    "RabbitSettings",
    "clear_settings_cache",
    "get_event_settings",
    "get_logging_settings",
    "get_rabbit_settings",
]
