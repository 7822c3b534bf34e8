"""
Logging setup for the API process.

Modules log through `logging.getLogger(__name__)` with `event key=value`
messages. This module only wires the root handler once on startup: a
human-readable console format by default, or one JSON object per line when
LOG_JSON=1 (useful when logs are shipped to a collector).
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
from typing import Any

# Attributes every LogRecord carries; anything else was passed via `extra=`.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys() | {"message", "asctime"}
)


def _json_formatter(record: logging.LogRecord) -> str:
    payload: dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    for key, value in record.__dict__.items():
        if key not in _STANDARD_ATTRS and not key.startswith("_"):
            payload[key] = value
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def json_logs_enabled() -> bool:
    return os.environ.get("LOG_JSON", "0").strip() in {"1", "true", "True"}


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure root logging. Arguments default to LOG_LEVEL / LOG_JSON.
    """
    level = level or log_level()
    if json_logs is None:
        json_logs = json_logs_enabled()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {
                    "()": JsonFormatter,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": level,
                }
            },
            "root": {
                "handlers": ["default"],
                "level": level,
            },
        }
    )
