"""Structured logging configuration for Intermax.

Environment variables:
    IMX_LOG_FORMAT  -- ``json`` for structured JSON output, ``text`` for human-readable (default).
    IMX_LOG_LEVEL   -- Python log level name (default: ``INFO``).
"""

from __future__ import annotations

import logging
import os
import traceback
from typing import Any

# Fields lifted from ``extra=`` onto the JSON document when present.
_STRUCTURED_FIELDS = (
    "request_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "user_id",
    "action",
    "reason",
    "permission",
    "resource_type",
    "resource_id",
)


def _is_json_mode() -> bool:
    """Return True when structured JSON logging is requested."""
    return os.environ.get("IMX_LOG_FORMAT", "text").lower() == "json"


def _get_log_level() -> int:
    """Return the numeric log level from IMX_LOG_LEVEL (default INFO)."""
    name = os.environ.get("IMX_LOG_LEVEL", "INFO").upper()
    numeric = getattr(logging, name, None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric


class StructuredJsonFormatter(logging.Formatter):
    """JSON formatter that emits one JSON object per log line.

    Uses ``pythonjsonlogger`` under the hood but injects the request and
    authorization fields when they are present on the LogRecord.
    """

    def __init__(self) -> None:
        super().__init__()
        from pythonjsonlogger.json import JsonFormatter

        self._inner = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        extras: dict[str, Any] = {}
        for key in _STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                extras[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            extras["traceback"] = traceback.format_exception(*record.exc_info)
            # Keep the traceback out of the free-form message.
            record.exc_info = None
            record.exc_text = None

        for k, v in extras.items():
            setattr(record, k, v)

        return self._inner.format(record)


def setup_logging() -> None:
    """Configure the root logger according to IMX_LOG_FORMAT and IMX_LOG_LEVEL."""
    level = _get_log_level()
    root = logging.getLogger()
    root.setLevel(level)

    # Remove any existing handlers so we don't double-log during tests.
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if _is_json_mode():
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))

    root.addHandler(handler)


def log_startup_info(db_path: str, refresh_seconds: int, dev_secret: bool) -> None:
    """Emit a structured startup log line with platform configuration."""
    import intermax

    logger = logging.getLogger("intermax")
    if dev_secret:
        logger.warning("IMX_SESSION_SECRET not set, using insecure default (dev only)")

    logger.info(
        "Intermax started",
        extra={
            "version": intermax.__version__,
            "db_path": db_path,
            "session_refresh_seconds": refresh_seconds,
            "rate_limit_config": os.environ.get("IMX_RATE_LIMIT", "default"),
        },
    )
