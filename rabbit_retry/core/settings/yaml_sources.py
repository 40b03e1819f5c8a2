"""YAML settings sources following the conf.d convention.

For a settings group called ``events`` the files read are, in order:

    <config dir>/events.yaml
    <config dir>/events.d/*.yaml   (alphabetical)
    <config dir>/events.d/*.yml    (alphabetical)

Later files are deep-merged into earlier ones, so a conf.d file can add an
event or change one field of an event without repeating the rest. The config
directory defaults to ``conf`` relative to the working directory.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic_settings import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


class ConfDYamlConfigSettingsSource(YamlConfigSettingsSource):
    """Reads ``<name>.yaml`` plus ``<name>.d/`` overrides from a config directory.

    Example:
        ConfDYamlConfigSettingsSource(
            EventSettings,
            yaml_file="events.yaml",
            confd_dir="events.d",
            config_dir_env="RABBIT_CONFIG_DIR",
        )
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: str,
        confd_dir: str | None,
        config_dir_env: str,
        base_dir: str = "conf",
        yaml_file_encoding: str | None = "utf-8",
    ) -> None:
        """Discover the files to read.

        Args:
            settings_cls: Settings model the data is validated against.
            yaml_file: Base file name inside the config directory.
            confd_dir: Override directory name, None to read the base file only.
            config_dir_env: Environment variable holding the config directory.
            base_dir: Config directory used when the variable is unset.
            yaml_file_encoding: Encoding of every file.
        """
        root = Path(os.getenv(config_dir_env, base_dir))

        found = [root / yaml_file] if (root / yaml_file).exists() else []
        overrides = root / confd_dir if confd_dir else None
        if overrides is not None and overrides.is_dir():
            for pattern in ("*.yaml", "*.yml"):
                found.extend(sorted(overrides.glob(pattern)))

        self._yaml_files = found

        super().__init__(
            settings_cls=settings_cls,
            yaml_file=found or None,
            yaml_file_encoding=yaml_file_encoding,
        )

    def _read_files(self, files: Any, deep_merge: bool = True) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for path in self._yaml_files:
            merged = _deep_merge(merged, self._read_file(path))
        return merged

    @property
    def yaml_files(self) -> tuple[Path, ...]:
        """Files read, in merge order."""
        return tuple(self._yaml_files)

    def __repr__(self) -> str:
        paths = ", ".join(str(path) for path in self._yaml_files)
        return f"{type(self).__name__}(yaml_files=[{paths}])"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def create_rabbit_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """conf/rabbit.yaml and conf/rabbit.d/, directory from RABBIT_CONFIG_DIR."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="rabbit.yaml",
        confd_dir="rabbit.d",
        config_dir_env="RABBIT_CONFIG_DIR",
    )


def create_events_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """conf/events.yaml and conf/events.d/, directory from RABBIT_CONFIG_DIR."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="events.yaml",
        confd_dir="events.d",
        config_dir_env="RABBIT_CONFIG_DIR",
    )


def create_logging_yaml_source(settings_cls: type[BaseSettings]) -> ConfDYamlConfigSettingsSource:
    """conf/logging.yaml and conf/logging.d/, directory from LOG_CONFIG_DIR."""
    return ConfDYamlConfigSettingsSource(
        settings_cls,
        yaml_file="logging.yaml",
        confd_dir="logging.d",
        config_dir_env="LOG_CONFIG_DIR",
    )
