"""Runtime settings for the expense tracker.

Settings are resolved in three layers: built-in defaults, an optional YAML
file (``path`` argument or ``$EXPENSE_CONFIG``) and finally ``EXPENSE_*``
environment variables, which always win.
"""

from __future__ import annotations

# ruff: noqa: ANN401
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cache
from pathlib import Path
from typing import Any, Final

import yaml

__all__ = ["ConfigError", "Settings", "get_settings", "load_settings"]

CONFIG_ENV_FLAG: Final[str] = "EXPENSE_CONFIG"
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///expenses.db"
DEFAULT_LOG_DIR: Final[Path] = Path("artifacts") / "logs"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})

# Environment variable -> settings field.
_ENV_OVERRIDES: Final[dict[str, str]] = {
    "EXPENSE_DATABASE_URL": "database_url",
    "EXPENSE_ECHO_SQL": "echo_sql",
    "EXPENSE_LOG_LEVEL": "log_level",
    "EXPENSE_JSON_LOGS": "json_logs",
    "EXPENSE_LOG_DIR": "log_dir",
    "EXPENSE_CORS_ORIGINS": "cors_origins",
}


class ConfigError(ValueError):
    """Raised when a configuration source holds an invalid value."""


@dataclass(slots=True)
class Settings:
    """Resolved configuration for the database, logging and HTTP layers.

    Attributes:
      database_url: SQLAlchemy URL of the expense store.
      echo_sql: Echo emitted SQL statements through the SQLAlchemy logger.
      log_level: Default level for ``expense_tracker`` loggers.
      json_logs: Mirror log records to a JSON-lines file under ``log_dir``.
      log_dir: Folder receiving the JSON log file.
      cors_origins: Origins accepted by the HTTP API.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo_sql: bool = False
    log_level: str = "INFO"
    json_logs: bool = False
    log_dir: Path = DEFAULT_LOG_DIR
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


def _as_bool(value: Any, *, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in _TRUE_VALUES:
            return True
        if candidate in _FALSE_VALUES:
            return False
    raise ConfigError(f"{key}: expected a boolean, got {value!r}")


def _as_string(value: Any, *, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key}: expected a non-empty string, got {value!r}")
    return value.strip()


def _as_origins(value: Any, *, key: str) -> list[str]:
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    elif isinstance(value, list | tuple):
        items = [str(item).strip() for item in value]
    else:
        raise ConfigError(f"{key}: expected a list or comma-separated string, got {value!r}")
    origins = [item for item in items if item]
    if not origins:
        raise ConfigError(f"{key}: at least one origin is required")
    return origins


def _coerce(name: str, value: Any, *, key: str) -> Any:
    """Convert a raw YAML or environment value into the type of field ``name``."""

    if name in {"echo_sql", "json_logs"}:
        return _as_bool(value, key=key)
    if name == "log_level":
        return _as_string(value, key=key).upper()
    if name == "log_dir":
        return Path(_as_string(value, key=key))
    if name == "cors_origins":
        return _as_origins(value, key=key)
    return _as_string(value, key=key)


def _read_config_file(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML") from exc
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ConfigError(f"{path}: top-level YAML node must be a mapping")
    return payload


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build :class:`Settings` from defaults, an optional YAML file and the environment.

    Args:
      path: YAML file to read; falls back to ``$EXPENSE_CONFIG`` when omitted.
      environ: Environment mapping, ``os.environ`` by default.

    Returns:
      The resolved settings.

    Raises:
      ConfigError: If the file is malformed, holds unknown keys or a value
        cannot be coerced.
      FileNotFoundError: If an explicitly requested file does not exist.
    """

    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    source = path if path is not None else env.get(CONFIG_ENV_FLAG)
    if source:
        config_path = Path(source)
        known = set(Settings.__dataclass_fields__)
        for key, raw in _read_config_file(config_path).items():
            if key not in known:
                raise ConfigError(f"{config_path}: unknown setting {key!r}")
            values[key] = _coerce(key, raw, key=f"{config_path}:{key}")

    for env_key, name in _ENV_OVERRIDES.items():
        raw = env.get(env_key)
        if raw is None or raw.strip() == "":
            continue
        values[name] = _coerce(name, raw, key=env_key)

    return Settings(**values)


@cache
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""

    return load_settings()
