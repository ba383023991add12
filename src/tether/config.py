"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .resolver import DEFAULT_EXTENSION

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/tether/config.yaml")
DEFAULT_LOG_LEVEL = "info"
LOG_LEVELS = ("debug", "info", "warning", "warn", "error", "critical")


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    file: Path | None = None


@dataclass(frozen=True)
class Config:
    """Fully parsed configuration."""

    base: str = ""
    default_extension: str = DEFAULT_EXTENSION
    alias: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from YAML.

    Without an explicit path, ``$TETHER_CONFIG`` and then the default
    location are tried; a missing default file yields the default config.
    """

    config_path, explicit = _resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        LOGGER.debug("No config file at %s; using defaults", config_path)
        return Config()

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return parse_config(raw)


def parse_config(raw: dict[str, Any]) -> Config:
    return Config(
        base=_parse_base(raw.get("base")),
        default_extension=_parse_extension(raw.get("default_extension")),
        alias=_parse_alias(raw.get("alias")),
        logging=_parse_logging(raw.get("logging")),
    )


def _resolve_config_path(explicit: Path | str | None) -> tuple[Path, bool]:
    if explicit:
        return Path(explicit).expanduser(), True
    env_path = os.environ.get("TETHER_CONFIG")
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH.expanduser(), False


def _parse_base(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError("base must be a string.")
    return value


def _parse_extension(value: Any) -> str:
    if value is None:
        return DEFAULT_EXTENSION
    if not isinstance(value, str) or not value.startswith(".") or len(value) < 2:
        raise ConfigError("default_extension must be a string starting with '.', e.g. '.py'.")
    return value


def _parse_alias(value: Any) -> Mapping[str, str]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, dict):
        raise ConfigError("alias must be a mapping of path segment to replacement.")

    alias: dict[str, str] = {}
    for key, replacement in value.items():
        if not isinstance(key, str) or not key:
            raise ConfigError("alias keys must be non-empty strings.")
        if "/" in key:
            raise ConfigError(f"alias[{key}] must be a single path segment.")
        if not isinstance(replacement, str):
            raise ConfigError(f"alias[{key}] must be a string.")
        alias[key] = replacement
    return MappingProxyType(alias)


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {level}")
    raw_file = value.get("file")
    if raw_file is not None and not isinstance(raw_file, str):
        raise ConfigError("logging.file must be a string path.")
    log_file = Path(raw_file).expanduser() if raw_file else None
    return LoggingConfig(level=level, file=log_file)


__all__ = [
    "Config",
    "ConfigError",
    "LoggingConfig",
    "load_config",
    "parse_config",
]
