"""Infrastructure: logging, metrics and messaging."""
