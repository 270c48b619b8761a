"""Centralized logging configuration.

Guarantees:
- All logs go to stderr; stdout stays free for tool-server transports
- Calling ``configure_logging`` twice never installs a second handler
- Human-readable lines by default, one JSON object per line when requested
- httpx/httpcore request logging is quieted unless DEBUG is requested
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_HANDLER_NAME = "maven_resolver_stderr"
_NOISY_LOGGERS = ("httpx", "httpcore")

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class _JsonFormatter(logging.Formatter):
    """One-line JSON: timestamp, level, logger, message and any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name or "root",
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _build_formatter(json_logs: bool) -> logging.Formatter:
    if json_logs:
        return _JsonFormatter()
    # 2026-01-01T00:00:00+0000 INFO maven_dependency_resolver.repository downloaded ...
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def _find_handler(root: logging.Logger) -> logging.Handler | None:
    for handler in root.handlers:
        if handler.name == _HANDLER_NAME:
            return handler
    return None


def _is_stdout_handler(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and handler.stream is sys.stdout


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure application-wide logging.

    Args:
        log_level: root level name, e.g. "DEBUG" or "WARNING". Unknown names
            fall back to INFO.
        json_logs: emit one JSON object per record instead of plain text.
    """
    level = logging.getLevelName((log_level or "").upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    handler = _find_handler(root)
    if handler is None:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.name = _HANDLER_NAME
        root.handlers = [h for h in root.handlers if not _is_stdout_handler(h)]
        root.addHandler(handler)
    handler.setFormatter(_build_formatter(json_logs))
    root.setLevel(level)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


__all__ = ["configure_logging"]
