"""Main CLI entry point for rabbit-retry commands."""

import click

from rabbit_retry import __version__
from rabbit_retry.cli.commands import events
from rabbit_retry.infra.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="rabbit-retry")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this command")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """rabbit-retry: failure policies for RabbitMQ consumers.

    \b
    Command Groups:
      events     Inspect per-event retry and DLQ configuration

    \b
    Quick Start:
      rabbit-retry events list
      rabbit-retry events show user-created
      rabbit-retry events ttl user-created --attempts 5
    """
    ctx.ensure_object(dict)
    overrides = {"log_level": log_level.upper()} if log_level else {}
    setup_logging(**overrides)


cli.add_command(events.events)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
