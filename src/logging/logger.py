# src/logging/logger.py — v3
"""Log formatters and ``setup_logging()`` for the ``bucketsync`` logger tree.

Records may carry structured fields through ``extra={"data": {...}}``; the
run summary does. JSON output nests them under ``data``, text output appends
them as ``key=value`` pairs.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from bucketsync.logging.context import LogContext, get_context

ROOT_LOGGER = "bucketsync"


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _record_data(record: logging.LogRecord) -> dict[str, Any]:
    data = getattr(record, "data", None)
    return data if isinstance(data, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record: context, structured data, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context
        data = _record_data(record)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``<time> [LEVEL] logger <run_id> [worker] (path) - message k=v``."""

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join([
            _record_time(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
            *self._context_tags(get_context()),
            f"- {record.getMessage()}",
        ])
        data = _record_data(record)
        if data:
            line += " " + " ".join(f"{k}={v}" for k, v in data.items())
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line

    @staticmethod
    def _context_tags(ctx: LogContext) -> list[str]:
        tags = []
        if ctx.run_id:
            tags.append(f"<{ctx.run_id}>")
        if ctx.worker:
            tags.append(f"[{ctx.worker}]")
        if ctx.path:
            tags.append(f"({ctx.path})")
        return tags


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 5,
) -> None:
    """Route the ``bucketsync`` logger to stderr and, optionally, a rotating file.

    Calling it again replaces the handlers installed by the previous call.
    Unknown formats fall back to text; unknown levels fall back to INFO.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = _FORMATTERS.get(log_format, TextFormatter)()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from bucketsync.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
