"""Structured logging for the MTO predictor.

One stdout handler is installed on the ``mto`` package logger; module
loggers obtained with ``get_logger(__name__)`` propagate to it. Records are
written as one JSON object per line. Level comes from LOG_LEVEL (default
INFO); LOG_FORMAT=text switches to a plain line format for local runs.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "mto"

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# JSON key -> LogRecord attribute
_RECORD_FIELDS = {
    "level": "levelname",
    "logger": "name",
    "module": "module",
    "function": "funcName",
    "line": "lineno",
}


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line, merging `extra_fields` if given."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "message": record.getMessage(),
        }
        for key, attr in _RECORD_FIELDS.items():
            payload[key] = getattr(record, attr, None)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # logger.info(..., extra={"extra_fields": {...}})
        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, default=str)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_handler(level: int, json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    return handler


def configure_logging(
    name: str = PACKAGE_LOGGER,
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> logging.Logger:
    """
    Install the stdout handler on `name` unless it already has one.

    Args:
        name: Logger to configure; the package logger by default
        level: Level name, else LOG_LEVEL, else INFO
        json_format: JSON lines unless LOG_FORMAT=text

    Returns:
        The configured logger
    """
    target = logging.getLogger(name)
    if target.handlers:
        return target

    if json_format is None:
        json_format = os.getenv("LOG_FORMAT", "json").lower() != "text"
    resolved = _resolve_level(level)
    target.setLevel(resolved)
    target.addHandler(_build_handler(resolved, json_format))
    return target


def get_logger(name: str) -> logging.Logger:
    """Module logger; names outside the package get their own handler."""
    configure_logging()
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return configure_logging(name)
