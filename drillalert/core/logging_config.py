"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • Scoped log context for HTTP requests and WebSocket sessions

Domain fields passed through ``extra`` (drill_id, class_name, session_id,
...) become top-level keys in JSON output and a short ``key=value`` tail in
pretty output.

Usage:
    from drillalert.core.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("Drill created", extra={"drill_id": 7, "class_name": "ClassA"})
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

from drillalert.core.config import settings

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Extra attributes copied into log output when present on the record
_EXTRA_FIELDS = (
    "drill_id", "class_name", "room", "event", "recipient_count",
    "delivered", "session_id", "duration_ms", "status_code", "endpoint",
)

# Shown inline by the pretty formatter, in this order
_PRETTY_FIELDS = ("drill_id", "class_name", "session_id", "delivered")


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """
    Attach ``fields`` to every log record emitted inside the block.

    Nested blocks extend the outer context; the previous context is
    restored on exit.
    """
    merged = {**_log_context.get(), **fields}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


def get_log_context() -> Dict[str, Any]:
    return _log_context.get()


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }

        ctx = get_log_context()
        if ctx:
            log_entry["context"] = ctx

        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")

        ctx = get_log_context()
        if ctx.get("request_id"):
            scope = f" [{ctx['request_id'][:8]}]"
        elif ctx.get("ws_session"):
            scope = f" [ws:{ctx['ws_session']}]"
        else:
            scope = ""

        tail = " ".join(
            f"{key}={getattr(record, key)}"
            for key in _PRETTY_FIELDS
            if getattr(record, key, None) is not None
        )

        formatted = (
            f"{color}{ts} {record.levelname:8s}{self.RESET}"
            f"{scope} {record.name}: {record.getMessage()}"
        )
        if tail:
            formatted += f"  ({tail})"
        if record.exc_info and record.exc_info[1]:
            formatted += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return formatted


def setup_logging() -> None:
    """Configure root logging based on environment."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else PrettyFormatter())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    if settings.DATABASE_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger — call once per module."""
    return logging.getLogger(name)
