"""Logging helpers."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import IO, Any

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "asctime",
}

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return [_jsonable(item) for item in value]
    return value


class JsonFormatter(logging.Formatter):
    """Render log records as compact JSON, one object per line."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                data[key] = _jsonable(value)

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False, default=str)


def configure_logging(
    *,
    level: int = logging.INFO,
    structured: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure root logging with optional JSON output.

    ``structured=None`` keeps whatever formatter is already installed, so
    library callers can invoke this without clobbering an embedding app.
    """

    root = logging.getLogger()
    root.setLevel(level)

    formatter: logging.Formatter = JsonFormatter() if structured else logging.Formatter(_PLAIN_FORMAT)

    if root.handlers:
        if structured is None:
            return
        for handler in root.handlers:
            handler.setFormatter(formatter)
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
