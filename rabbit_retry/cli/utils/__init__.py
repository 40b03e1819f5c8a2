"""CLI utilities."""

from rabbit_retry.cli.utils.formatters import error, info, print_table, success, warning

__all__ = ["error", "info", "print_table", "success", "warning"]
