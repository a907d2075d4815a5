"""
Structured Logging Configuration Module for Tubely

This module provides logging utilities with JSON-formatted output, context
enrichment via LoggerAdapter, and integration with Uvicorn's loggers for
consistent application-wide logging.

Features:
- JSONFormatter: structured JSON log records (production)
- StandardFormatter: human-readable lines (development)
- setup_logging: root logger, Uvicorn and third-party logger configuration
- add_log_context: LoggerAdapter carrying per-request context such as
  video_id and user_id

Usage:
    from app.utils.logger import setup_logging, add_log_context

    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, video_id="abc", user_id="u1")
    ctx_logger.info("Staged upload", extra={"size": 1024})
"""

import json
import logging
import sys
import traceback

from datetime import datetime, timezone
from typing import Any, Dict, Optional


# =============================================================================
# Constants
# =============================================================================

# Log level mapping from string to logging constants
LOG_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Third-party loggers to reduce verbosity
THIRD_PARTY_LOGGERS: list = [
    "motor",
    "pymongo",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "multipart",
    "python_multipart",
    "httpx",
    "httpcore",
    "asyncio",
]


# =============================================================================
# Custom JSON Encoder
# =============================================================================


class LogJSONEncoder(json.JSONEncoder):
    """
    JSON encoder for log records.

    Falls back to ``str()`` for anything json cannot encode natively, so a
    log call never fails because of an odd ``extra`` value.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return str(obj)


# =============================================================================
# JSONFormatter Class
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    Logging formatter that outputs log records as JSON strings.

    Each record becomes one line containing timestamp, level, logger name,
    message, exception info (if present), and any extra fields passed via
    ``extra=`` or a ContextLoggerAdapter.

    Example output:
        {
            "timestamp": "2026-01-15T10:30:45.123456+00:00",
            "level": "INFO",
            "logger": "app.services.ingestion_service",
            "message": "Staged upload",
            "extra": {"video_id": "0b0a...", "stage": "staged", "size": 1048576}
        }
    """

    # Standard LogRecord attributes to exclude from extra fields
    RESERVED_ATTRS: set = {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
        "color_message",
    }

    def __init__(
        self,
        include_extra_fields: bool = True,
        include_source_location: bool = False,
    ) -> None:
        """
        Initialize the JSON formatter.

        Args:
            include_extra_fields: Include custom extra fields in output
            include_source_location: Include filename, lineno, funcName
        """
        super().__init__()
        self.include_extra_fields = include_extra_fields
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        """Format a LogRecord as a single JSON line."""
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_entry["exception"] = self._format_exception(record)

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        if self.include_extra_fields:
            extra_fields = self._extract_extra_fields(record)
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(
            log_entry,
            cls=LogJSONEncoder,
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def _format_exception(self, record: logging.LogRecord) -> Dict[str, Any]:
        exc_type, exc_value, _ = record.exc_info
        return {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value) if exc_value else "",
            "traceback": "".join(traceback.format_exception(*record.exc_info)),
        }

    def _extract_extra_fields(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Attributes on the record that are not standard LogRecord fields."""
        return {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }


# =============================================================================
# Standard Text Formatter
# =============================================================================


class StandardFormatter(logging.Formatter):
    """
    Human-readable formatter for console output in development mode.

    Format: [TIMESTAMP] LEVEL logger_name: message
    """

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
    ) -> None:
        super().__init__(
            fmt=fmt or self.DEFAULT_FORMAT,
            datefmt=datefmt or self.DEFAULT_DATE_FORMAT,
        )


# =============================================================================
# Application Logging Setup
# =============================================================================


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure application-wide logging with root logger and Uvicorn integration.

    Called once from the FastAPI lifespan. Configures:
    - Root logger with a stdout handler and JSON or standard formatting
    - Uvicorn loggers with the same formatter
    - Third-party logger level reduction

    Args:
        log_level: Application log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON format; if False, output standard text
        third_party_level: Log level for third-party libraries (default WARNING)
    """
    level_str = log_level.upper()
    level = LOG_LEVEL_MAP.get(level_str, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(
            include_extra_fields=True,
            include_source_location=level <= logging.DEBUG,
        )
    else:
        formatter = StandardFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)
    _configure_third_party_loggers(LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING))

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_str}, json={json_logs}"
    )


def _configure_uvicorn_logging(
    formatter: logging.Formatter,
    level: int,
) -> None:
    """
    Point Uvicorn's loggers at handlers using the application formatter.

    Errors go to stderr, everything else to stdout.
    """
    for name, stream in (
        ("uvicorn", sys.stdout),
        ("uvicorn.access", sys.stdout),
        ("uvicorn.error", sys.stderr),
    ):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


def _configure_third_party_loggers(level: int) -> None:
    """Set log levels for third-party libraries to reduce noise."""
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's ``extra`` dict
    instead of replacing it. Values passed at the call site win.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(
    logger: logging.Logger,
    **kwargs: Any,
) -> logging.LoggerAdapter:
    """
    Create a LoggerAdapter that adds ``kwargs`` to every log record.

    Example:
        log = add_log_context(logger, video_id=video_id, user_id=user_id)
        log.info("Staged upload", extra={"size": 1024})
        # extra: video_id, user_id and size
    """
    return ContextLoggerAdapter(logger, kwargs)


__all__ = [
    "ContextLoggerAdapter",
    "JSONFormatter",
    "LOG_LEVEL_MAP",
    "StandardFormatter",
    "add_log_context",
    "setup_logging",
]
