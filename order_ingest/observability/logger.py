"""
Structured logging for order-ingest

Lines are JSON (python-json-logger) or plain text. Every line carries the
context bound for the work in progress: ``run_id`` and ``date`` for an
import run, ``platform`` inside one platform pipeline. The context lives in
a ContextVar, so each pipeline thread only sees its own platform.
"""
import logging
import os
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "order-ingest"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Ordered so text lines read "run_id=... date=... platform=..."
CONTEXT_FIELDS = ("run_id", "date", "platform")

_log_context: ContextVar[dict] = ContextVar("order_ingest_log_context", default={})


def new_run_id() -> str:
    """Short random id tying together the lines of one import run."""
    return uuid.uuid4().hex[:12]


def current_context() -> dict:
    return dict(_log_context.get())


@contextmanager
def bind_context(**fields):
    """
    Attach fields to every line logged inside the block.

    Args:
        **fields: Context values; None values are ignored
    """
    merged = {**_log_context.get(), **{key: value for key, value in fields.items() if value is not None}}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


class RunContextFilter(logging.Filter):
    """Copies the bound context onto a record; fields passed via ``extra`` win."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        for key, value in context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        record.context = " ".join(
            f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if getattr(record, key, None) is not None
        )
        return True


class RunJsonFormatter(jsonlogger.JsonFormatter):
    """JSON line with a UTC timestamp, level, logger, thread and run context."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        # The joined form is for text output only
        log_record.pop("context", None)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["thread"] = record.threadName


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger with one stdout handler.

    Args:
        name: Logger name
        level: Log level name, defaults to LOG_LEVEL (INFO)
        format_type: "json" or "text", defaults to LOG_FORMAT (json)

    Returns:
        The configured logger
    """
    log_level = LOG_LEVELS.get((level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RunContextFilter())
    if format_type == "json":
        handler.setFormatter(RunJsonFormatter(fmt="%(level)s %(logger)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s [%(context)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Logger by name, configured from the environment on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


@contextmanager
def log_operation(operation_name: str, logger: logging.Logger | None = None, **fields):
    """
    Log the start and the outcome of a block with its duration.

    Exceptions are logged with their type and re-raised.

    Usage:
        with log_operation("Flushing buffer", logger=logger, records=500):
            ...
    """
    logger = logger or get_logger()
    extra = {"operation": operation_name, **fields}
    started = time.monotonic()
    logger.info(f"Starting: {operation_name}", extra=extra)
    try:
        yield
    except Exception as e:
        logger.error(
            f"Failed: {operation_name}",
            extra={
                **extra,
                "duration_seconds": round(time.monotonic() - started, 3),
                "status": "error",
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise
    logger.info(
        f"Completed: {operation_name}",
        extra={**extra, "duration_seconds": round(time.monotonic() - started, 3), "status": "success"},
    )
