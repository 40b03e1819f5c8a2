"""Event configuration commands."""

import json
import sys

import click

from rabbit_retry.cli.utils import error, info, print_table, success, warning
from rabbit_retry.core.exceptions import ConfigurationMissingError
from rabbit_retry.core.settings import get_rabbit_settings
from rabbit_retry.infra.messaging.dlq import EventRegistry, calculate_retry_ttl, retry_schedule

LIST_COLUMNS = ["event", "exchange", "queue", "queue_retry", "queue_dlq", "ttl_ms", "multiply", "max_attempts"]


@click.group(name="events")
def events() -> None:
    """Inspect per-event retry and DLQ configuration."""


def _load_registry() -> EventRegistry:
    return EventRegistry.from_settings()


@events.command(name="list")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
def list_events(output_format: str) -> None:
    """List configured events with their retry and DLQ queues."""
    registry = _load_registry()

    rows: list[dict[str, object]] = []
    for name in registry.names():
        properties = registry.resolve(name)
        rows.append(
            {
                "event": name,
                "exchange": properties.exchange,
                "queue": properties.queue,
                "queue_retry": properties.queue_retry,
                "queue_dlq": properties.queue_dlq,
                "ttl_ms": properties.ttl_retry_message,
                "multiply": properties.ttl_multiply,
                "max_attempts": properties.max_retries_attempts,
            }
        )

    if output_format == "json":
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        info("No events configured")
        return

    print_table(rows, LIST_COLUMNS)


@events.command()
@click.argument("name")
@click.option(
    "--show-secrets/--hide-secrets",
    default=False,
    help="Show sensitive values (passwords)",
)
def show(name: str, show_secrets: bool) -> None:
    """Show the resolved configuration of one event."""
    try:
        properties = _load_registry().resolve(name)
    except ConfigurationMissingError as exc:
        error(exc.detail)
        sys.exit(1)

    if not show_secrets:
        warning("Secrets are hidden. Use --show-secrets to display them.")

    summary = properties.to_summary(show_secrets=show_secrets)
    summary["connection_url"] = properties.connection_url(get_rabbit_settings(), mask_password=not show_secrets)

    click.echo(f"\n[{name}]")
    for key, value in summary.items():
        click.echo(f"  {key:24} = {value}")


@events.command()
@click.argument("name")
@click.option("--attempts", type=click.IntRange(min=1), default=None, help="Attempts to show (default: max attempts)")
def ttl(name: str, attempts: int | None) -> None:
    """Print the retry delay schedule of an event."""
    try:
        properties = _load_registry().resolve(name)
    except ConfigurationMissingError as exc:
        error(exc.detail)
        sys.exit(1)

    schedule = retry_schedule(properties, attempts)
    if not schedule:
        info(f"{name}: retries disabled, failures go straight to {properties.queue_dlq}")
        return

    for attempt, delay in enumerate(schedule, start=1):
        click.echo(f"  attempt {attempt:>3}: {delay} ms")

    exhausted = len(schedule) >= properties.max_retries_attempts
    if exhausted:
        success(f"After {properties.max_retries_attempts} retries messages go to {properties.queue_dlq}")
    else:
        info(f"Next delay would be {calculate_retry_ttl(properties, len(schedule))} ms")
