"""Logging settings for consumer processes."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_logging_yaml_source

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """How dispatch decisions and errors are logged.

    Environment variables use the LOG_ prefix (LOG_LEVEL, LOG_FILE_PATH...).
    The JSON toggle is read from ``json`` (conf/logging.yaml or JSON=false).
    """

    service_name: str = Field(default="rabbit-retry", description="Static ``service`` field of JSON records.")
    level: LogLevel = Field(default="INFO", description="Root logger level.")
    json_logs: bool = Field(default=True, alias="json", description="JSON Lines output instead of plain text.")
    console_level: LogLevel | None = Field(default=None, description="Stderr level, root level when unset.")
    file_level: LogLevel | None = Field(default=None, description="File level, root level when unset.")
    file_path: Path | None = Field(default=None, description="Rotating log file, disabled when unset.")
    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        le=1024 * 1024 * 1024,
        description="Rotate the log file at this size.",
    )
    file_backup_count: int = Field(default=5, ge=0, le=100, description="Rotated files kept.")
    capture_warnings: bool = Field(default=True, description="Log ``warnings.warn`` calls.")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
        extra="ignore",
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
            create_logging_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for configure_logging()."""
        return {
            "log_level": self.level,
            "console_level": self.console_level,
            "file_level": self.file_level,
            "file_path": self.file_path,
            "json_logs": self.json_logs,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "capture_warnings": self.capture_warnings,
            "service_name": self.service_name,
        }
