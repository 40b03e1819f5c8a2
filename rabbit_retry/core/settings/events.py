"""Per-event topology and retry settings.

Each consumer event gets one EventProperties entry keyed by its event name.
The entry says where the event's messages live (exchange, queue, routing key),
how retries are delayed (base TTL and growth multiplier), when retries give
up (max attempts), and optionally which broker to talk to.

Example conf/events.yaml:

    events:
      user-created:
        exchange: accounts
        queue: accounts.user-created
        routing_key: user.created
        ttl_retry_message: 5000
        ttl_multiply: 2.0
        max_retries_attempts: 5
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .rabbit import RabbitSettings, build_amqp_url
from .yaml_sources import create_events_yaml_source

ExchangeType = Literal["headers", "topic", "direct", "fanout"]

RETRY_QUEUE_SUFFIX = ".retry"
DLQ_QUEUE_SUFFIX = ".dlq"


class EventProperties(BaseModel):
    """Topology, retry and connection settings for one event.

    Attributes:
        exchange: Exchange the event is published to.
        exchange_type: Exchange type.
        queue: Main consumer queue.
        routing_key: Routing key binding the main queue.
        ttl_retry_message: Base delay (ms) a message waits in the retry queue.
        ttl_multiply: Growth factor applied per attempt (1.0 = constant delay).
        max_ttl_retry_message: Optional cap (ms) on the computed delay.
        max_retries_attempts: Retries allowed before the message goes to the DLQ.
        host: Broker host override for this event.
        port: Broker port override for this event.
        username: Broker username override for this event.
        password: Broker password override for this event.
        virtual_host: Virtual host override for this event.
        ssl: TLS override for this event.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    exchange: str = Field(min_length=1, max_length=255)
    exchange_type: ExchangeType = "topic"
    queue: str = Field(min_length=1, max_length=255)
    routing_key: str = Field(default="", max_length=255)

    ttl_retry_message: int = Field(
        default=5000,
        ge=0,
        description="Base retry delay in milliseconds.",
    )
    ttl_multiply: float = Field(
        default=1.0,
        ge=1.0,
        le=10.0,
        description="Delay multiplier applied for every previous attempt.",
    )
    max_ttl_retry_message: int | None = Field(
        default=None,
        ge=0,
        description="Maximum retry delay in milliseconds (None = uncapped).",
    )
    max_retries_attempts: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Retries before the message is routed to the DLQ.",
    )

    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    username: str | None = None
    password: SecretStr | None = None
    virtual_host: str | None = None
    ssl: bool | None = None

    @model_validator(mode="after")
    def _validate_ttl_cap(self) -> EventProperties:
        """Ensure the delay cap is not below the base delay."""
        if self.max_ttl_retry_message is not None and self.max_ttl_retry_message < self.ttl_retry_message:
            msg = (
                f"max_ttl_retry_message ({self.max_ttl_retry_message}) must be >= "
                f"ttl_retry_message ({self.ttl_retry_message})"
            )
            raise ValueError(msg)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def queue_retry(self) -> str:
        """Retry queue name, where messages wait for their TTL to expire."""
        return f"{self.queue}{RETRY_QUEUE_SUFFIX}"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def queue_dlq(self) -> str:
        """Dead letter queue name."""
        return f"{self.queue}{DLQ_QUEUE_SUFFIX}"

    @property
    def has_connection_override(self) -> bool:
        """Whether any broker connection field is set for this event."""
        return any(
            value is not None
            for value in (self.host, self.port, self.username, self.password, self.virtual_host, self.ssl)
        )

    def connection_url(self, defaults: RabbitSettings, *, mask_password: bool = False) -> str:
        """AMQP URI for this event, falling back to the shared broker settings."""
        password = self.password.get_secret_value() if self.password else defaults.password.get_secret_value()
        return build_amqp_url(
            host=self.host or defaults.host,
            port=self.port or defaults.port,
            username=self.username or defaults.username,
            password=password,
            vhost=self.virtual_host if self.virtual_host is not None else defaults.vhost,
            ssl=self.ssl if self.ssl is not None else defaults.ssl_enabled,
            mask_password=mask_password,
        )

    def to_summary(self, show_secrets: bool = False) -> dict[str, Any]:
        """Flat dictionary for logging and CLI output."""
        summary = self.model_dump(exclude={"password"})
        summary["password"] = (
            self.password.get_secret_value() if show_secrets and self.password else ("***" if self.password else None)
        )
        return summary


class EventSettings(BaseSettings):
    """All event configurations keyed by event name.

    Environment variables use RABBIT_EVENTS_ prefix, the mapping itself is
    passed as JSON: RABBIT_EVENTS_EVENTS='{"user-created": {...}}'.
    Usually loaded from conf/events.yaml.
    """

    events: dict[str, EventProperties] = Field(
        default_factory=dict,
        description="Event configurations keyed by event name.",
    )

    model_config = SettingsConfigDict(
        env_prefix="RABBIT_EVENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_events_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @field_validator("events")
    @classmethod
    def _validate_event_names(cls, value: dict[str, EventProperties]) -> dict[str, EventProperties]:
        """Reject blank event names."""
        for name in value:
            if not name or not name.strip():
                msg = "Event names must be non-empty"
                raise ValueError(msg)
        return value
