"""Logging setup for the expense tracker.

Console output is always on. A JSON-lines file under the configured log
directory is added when requested, and carries the audit fields the
tracker attaches through ``extra``: the expense touched by a mutation or the
report computed together with its row count and timing.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from expense_tracker.config import get_settings

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
LOG_FILENAME: Final[str] = "expense_tracker.log"
ROOT_LOGGER: Final[str] = "expense_tracker"
JSON_ENV_FLAG: Final[str] = "EXPENSE_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "EXPENSE_LOG_LEVEL"
AUDIT_FIELDS: Final[tuple[str, ...]] = ("expense_id", "report", "rows_processed", "process_time_ms")

_CONSOLE_MARKER: Final[str] = "_expense_console"
_JSON_MARKER: Final[str] = "_expense_json"
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


class ExpenseJsonFormatter(logging.Formatter):
    """One JSON object per record; audit fields appear only when set."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in AUDIT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


@dataclass(frozen=True, slots=True)
class LogOptions:
    level: int
    json_file: Path | None


def _level_from_name(name: str) -> int:
    resolved = logging.getLevelName(name.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def resolve_options(
    level: str | int | None = None,
    json_format: bool = False,
    log_dir: Path | str | None = None,
) -> LogOptions:
    """Merge arguments with ``EXPENSE_LOG_LEVEL``/``EXPENSE_JSON_LOGS`` and the settings.

    The environment level wins over ``level``, which wins over the settings.
    JSON output is enabled by ``json_format``, else by the environment flag,
    else by ``Settings.json_logs``.
    """

    settings = get_settings()
    env_level = os.environ.get(LEVEL_ENV_FLAG)
    if env_level:
        resolved_level = _level_from_name(env_level)
    elif isinstance(level, int):
        resolved_level = level
    else:
        resolved_level = _level_from_name(level or settings.log_level)

    env_json = os.environ.get(JSON_ENV_FLAG)
    if json_format:
        wants_json = True
    elif env_json is not None:
        wants_json = env_json.strip().lower() in _TRUTHY
    else:
        wants_json = settings.json_logs

    json_file = None
    if wants_json:
        json_file = Path(log_dir if log_dir is not None else settings.log_dir) / LOG_FILENAME
    return LogOptions(level=resolved_level, json_file=json_file)


def _ensure_handler(
    logger: logging.Logger,
    marker: str,
    level: int,
    factory: Callable[[], logging.Handler],
) -> logging.Handler:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            handler.setLevel(level)
            return handler
    handler = factory()
    handler.setLevel(level)
    setattr(handler, marker, True)
    logger.addHandler(handler)
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _json_handler(path: Path) -> Callable[[], logging.Handler]:
    def build() -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(ExpenseJsonFormatter())
        return handler

    return build


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
    log_dir: Path | str | None = None,
) -> logging.Logger:
    """Return ``name``'s logger with a console handler and, if enabled, the JSON file.

    Repeated calls only adjust levels. Records still propagate so ``caplog``
    sees them.
    """

    options = resolve_options(level, json_format, log_dir)
    logger = logging.getLogger(name)
    logger.setLevel(options.level)
    logger.propagate = True
    _ensure_handler(logger, _CONSOLE_MARKER, options.level, _console_handler)
    if options.json_file is not None:
        _ensure_handler(logger, _JSON_MARKER, options.level, _json_handler(options.json_file))
    return logger


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> logging.Logger:
    """Reconfigure the package logger for one CLI run.

    ``--json-logs`` is exported through ``EXPENSE_JSON_LOGS``. Module loggers
    are reset to ``NOTSET`` so they inherit the package level and emit
    through its handlers only.
    """

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    else:
        os.environ.pop(JSON_ENV_FLAG, None)
    prefix = f"{ROOT_LOGGER}."
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(prefix):
            logger.setLevel(logging.NOTSET)
    return setup_logger(ROOT_LOGGER, json_format=json_logs, level=level)


__all__ = [
    "AUDIT_FIELDS",
    "ExpenseJsonFormatter",
    "LogOptions",
    "configure_cli_logging",
    "resolve_options",
    "setup_logger",
]
