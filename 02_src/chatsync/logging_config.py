"""JSON logging for the chat core and the dev server."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOG_PATH

# Every poll tick is an HTTP request; keep client libraries quiet
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "multipart")


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Structured fields go in ``extra={"context": {...}}`` (conversation_id,
    temp_id, message_id, ...). The asyncio task name is included when the
    record was emitted from a task, which tells poll ticks, sends and
    recorder ticks apart.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        task = getattr(record, "taskName", None)
        if task:
            entry["task"] = task
        if hasattr(record, "context"):
            entry["context"] = record.context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


def _logging_dict(level: str, log_file: str, console: bool) -> dict[str, Any]:
    handlers: dict[str, dict[str, Any]] = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": "chatsync.logging_config.JSONFormatter"}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {"level": level.upper(), "handlers": list(handlers)},
    }


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure JSON logging on the root logger.

    Args:
        log_level: DEBUG shows every poll tick. Defaults to LOG_LEVEL or INFO.
        log_file: Defaults to LOG_FILE or 04_logs/chatsync.log.
        console: Also write to stdout.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")
    path = Path(log_file or os.getenv("LOG_FILE") or DEFAULT_LOG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(_logging_dict(level, str(path), console))


def get_logger(name: str) -> logging.Logger:
    """Logger for a chatsync or devserver module."""
    return logging.getLogger(name)
