"""Core building blocks: settings and exception types."""
