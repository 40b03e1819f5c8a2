"""Output formatting utilities for CLI commands."""

import click


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green")


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def warning(message: str) -> None:
    """Print a warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def print_table(rows: list[dict[str, object]], columns: list[str]) -> None:
    """Print rows as a fixed-width table."""
    widths = {col: max([len(col)] + [len(str(row.get(col, ""))) for row in rows]) for col in columns}
    click.echo("  ".join(col.upper().ljust(widths[col]) for col in columns))
    click.echo("  ".join("-" * widths[col] for col in columns))
    for row in rows:
        click.echo("  ".join(str(row.get(col, "")).ljust(widths[col]) for col in columns))
