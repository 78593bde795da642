from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from coach_engine.config import get_settings

# Extras carrying this prefix are gathered into the record's "context" block
CONTEXT_PREFIX = "ctx_"

_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "alembic")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with ``log_context`` fields under "context"."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }
        context = {
            key[len(CONTEXT_PREFIX):]: value
            for key, value in record.__dict__.items()
            if key.startswith(CONTEXT_PREFIX)
        }
        if context:
            log_entry["context"] = context
        return json.dumps(log_entry, default=str)


def log_context(**fields: Any) -> dict[str, Any]:
    """``extra=`` mapping for entity ids, e.g. ``log_context(workout_id=3)``."""
    return {f"{CONTEXT_PREFIX}{key}": value for key, value in fields.items()}


def setup_logging(level: str | None = None) -> None:
    """Send JSON logs to stdout at ``level``, defaulting to ``Settings.log_level``."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = level or get_settings().log_level
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
