"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated config directories and settings caches
    - Messaging Fixtures: event configuration, registries, mocked dispatcher
    - Message Fixtures: consumed broker messages with and without x-death history

Tests never touch a real broker: publishing goes through AsyncMock objects.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from rabbit_retry.core.settings import EventProperties, clear_settings_cache
from rabbit_retry.infra.messaging.dlq import DispatchEngine, EventRegistry, RetryDlqGuard

# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every YAML source at an empty directory and reset cached settings.

    Each test starts from defaults; tests that need YAML write it into
    ``config_dir``.
    """
    config_dir = tmp_path / "conf"
    config_dir.mkdir()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RABBIT_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("LOG_CONFIG_DIR", str(config_dir))
    for name in ("RABBIT_AMQP_URI", "AMQP_URI", "RABBIT_HOST", "RABBIT_EVENTS_EVENTS"):
        monkeypatch.delenv(name, raising=False)

    clear_settings_cache()
    yield config_dir
    clear_settings_cache()


@pytest.fixture
def config_dir(isolated_settings):
    """Directory read by the YAML settings sources."""
    return isolated_settings


# ============================================================================
# Messaging Fixtures
# ============================================================================


@pytest.fixture
def event_properties() -> EventProperties:
    """Configuration of the ``user-created`` test event."""
    return EventProperties(
        exchange="accounts",
        queue="accounts.user-created",
        routing_key="user.created",
        ttl_retry_message=1000,
        ttl_multiply=2.0,
        max_ttl_retry_message=5000,
        max_retries_attempts=3,
    )


@pytest.fixture
def event_registry(event_properties) -> EventRegistry:
    """Registry holding only the ``user-created`` event."""
    return EventRegistry({"user-created": event_properties})


@pytest.fixture
def mock_dispatcher():
    """RetryDispatcher double recording publish requests."""
    dispatcher = MagicMock()
    dispatcher.send_to_retry_or_dlq = AsyncMock(return_value=None)
    dispatcher.send_to_dlq = AsyncMock(return_value=None)
    return dispatcher


@pytest.fixture
def engine(mock_dispatcher, event_registry) -> DispatchEngine:
    """DispatchEngine wired to the mocked dispatcher."""
    return DispatchEngine(dispatcher=mock_dispatcher, events=event_registry)


@pytest.fixture
def guard(engine) -> RetryDlqGuard:
    """Guard feeding handler failures into ``engine``."""
    return RetryDlqGuard(engine)


@pytest.fixture
def mock_broker():
    """FastStream broker double with an async ``publish``."""
    broker = MagicMock()
    broker.publish = AsyncMock(return_value=None)
    return broker


# ============================================================================
# Message Fixtures
# ============================================================================


def make_message(headers: dict | None = None, body: bytes = b'{"user_id": 42}') -> MagicMock:
    """Build a consumed message as seen by a handler."""
    message = MagicMock()
    message.body = body
    message.headers = headers or {}
    message.message_id = "msg-1"
    message.correlation_id = "corr-1"
    message.content_type = "application/json"
    return message


def x_death(queue: str, count: int, reason: str = "expired") -> dict:
    """One x-death header entry."""
    return {"queue": queue, "reason": reason, "count": count, "exchange": "accounts"}


@pytest.fixture
def message_factory():
    """Factory building consumed messages with custom headers or body."""
    return make_message


@pytest.fixture
def death_entry():
    """Factory building x-death header entries."""
    return x_death


@pytest.fixture
def message() -> MagicMock:
    """A message delivered for the first time."""
    return make_message()
