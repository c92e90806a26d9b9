"""Structured logging configuration for adsync.

Provides JSON-formatted logs for unattended runs and human-readable
logs for interactive use.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import get_settings

# Attributes every LogRecord carries; anything else arrived through ``extra``
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed via extra={...} land directly on the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.funcName:
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter for terminals."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: str | None = None) -> None:
    """Configure logging based on settings.

    Args:
        level: Optional level name overriding ``Settings.log_level``
    """
    settings = get_settings()

    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Suppress noisy loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)

    get_logger(__name__).debug(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": logging.getLevelName(log_level),
            "log_format": settings.log_format,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to all log messages."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Process the logging message and add extra context."""
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger with additional context.

    Args:
        name: Logger name
        **context: Context fields to add to all log messages

    Returns:
        Logger adapter with context

    Usage:
        logger = get_context_logger(__name__, mode="incremental", page_id="123")
        logger.info("Processing response")  # Includes mode and page_id
    """
    return LoggerAdapter(get_logger(name), context)


# =========================
# Convenience functions
# =========================


def log_sync_start(mode: str, run_id: str, page_id: str | None = None) -> None:
    """Log the start of a sync run."""
    logger = get_logger("adsync.sync")
    logger.info(
        f"Starting {mode} sync" + (f" for page {page_id}" if page_id else ""),
        extra={"mode": mode, "run_id": run_id, "page_id": page_id, "event": "sync_start"},
    )


def log_sync_complete(
    mode: str,
    run_id: str,
    records_saved: int,
    duration_seconds: float,
) -> None:
    """Log the completion of a sync run."""
    logger = get_logger("adsync.sync")
    logger.info(
        f"Completed {mode} sync",
        extra={
            "mode": mode,
            "run_id": run_id,
            "records_saved": records_saved,
            "duration_seconds": duration_seconds,
            "event": "sync_complete",
        },
    )


def log_sync_error(mode: str, run_id: str, error: str) -> None:
    """Log a fatal sync error."""
    logger = get_logger("adsync.sync")
    logger.error(
        f"Sync error during {mode} sync: {error}",
        extra={"mode": mode, "run_id": run_id, "error": error, "event": "sync_error"},
    )


def log_record_processed(
    run_id: str,
    record_id: str,
    page_id: str,
    action: str,
) -> None:
    """Log processing of an individual ad record.

    Args:
        run_id: Sync run identifier
        record_id: Ad identifier
        page_id: Page the ad belongs to
        action: Action taken (new, changed, unchanged, captured, refused)
    """
    logger = get_logger("adsync.sync")
    logger.debug(
        f"Processed ad {record_id} ({action})",
        extra={
            "run_id": run_id,
            "record_id": record_id,
            "page_id": page_id,
            "action": action,
            "event": "record_processed",
        },
    )


def log_schema_drift(source_url: str | None, top_level_keys: list[str]) -> None:
    """Log a decoded payload that carried no ads.

    Repeated occurrences for ad-bearing URLs usually mean the upstream
    response shape moved.
    """
    logger = get_logger("adsync.extraction")
    logger.debug(
        "No ads found in response",
        extra={
            "source_url": source_url,
            "top_level_keys": top_level_keys,
            "event": "schema_drift",
        },
    )
