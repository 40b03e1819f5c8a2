"""Process-wide logging setup for consumers.

Records from every ``rabbit_retry`` logger propagate to the root logger, whose
only handler is a QueueHandler. A QueueListener thread drains the queue into
the real console/file handlers so a slow log sink never stalls message
handling. Output is JSON Lines by default.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from rabbit_retry.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from rabbit_retry.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def shutdown() -> None:
    """Drain pending records and detach the queue handler.

    Safe to call more than once; also registered with atexit.
    """
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Configure logging from LoggingSettings, at most once per process.

    Args:
        log_settings: Settings to use, the cached LoggingSettings when omitted.
        force: Configure again even if a previous call already did.
        **configure_kwargs: Values overriding the settings, e.g. ``log_level="DEBUG"``.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from rabbit_retry.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **configure_kwargs})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "rabbit-retry",
    **kwargs: Any,
) -> None:
    """Install the root logger configuration.

    Any previous configuration made by this module is shut down first.

    Args:
        log_level: Root level.
        console_level: Level of the stderr handler, defaults to ``log_level``.
        file_level: Level of the file handler, defaults to ``log_level``.
        file_path: Rotating log file, no file output when None.
        json_logs: JSON Lines output instead of plain text.
        console_enabled: Write to stderr.
        capture_warnings: Route ``warnings.warn`` through logging.
        file_max_bytes: Size at which the log file rotates.
        file_backup_count: Rotated files kept.
        service_name: Value of the ``service`` field in JSON records.
        **kwargs: Unknown options, ignored.

    Example:
        configure_logging(log_level="DEBUG", json_logs=False)
    """
    if kwargs:
        logger.debug("Ignoring unknown logging options: %s", ", ".join(sorted(kwargs)))

    if capture_warnings:
        logging.captureWarnings(True)

    shutdown()

    log_file = Path(file_path) if file_path else None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
        }
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        handlers.append(
            _make_handler(logging.StreamHandler(), console_level or log_level, json_logs, service_name)
        )
    if log_file is not None:
        rotating = RotatingFileHandler(
            log_file,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        handlers.append(_make_handler(rotating, file_level or log_level, json_logs, service_name))

    _start_queue(handlers)


def _make_handler(handler: logging.Handler, level: str, json_logs: bool, service_name: str) -> logging.Handler:
    handler.setLevel(level.upper())
    if json_logs:
        handler.setFormatter(JSONFormatter(static={"service": service_name}))
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATEFMT))
    return handler


def _start_queue(handlers: list[logging.Handler]) -> None:
    global _log_queue, _listener, _queue_handler

    _log_queue = Queue()
    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    _queue_handler = QueueHandler(_log_queue)
    logging.getLogger().addHandler(_queue_handler)
