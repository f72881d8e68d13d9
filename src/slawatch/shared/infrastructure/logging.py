"""
Structured Logging
==================

JSON log lines on stdout, one object per record. HTTP requests carry a
correlation id; evaluator ticks carry their tick id in the same field so a
whole pass can be grepped out of the stream.

Usage:
    from slawatch.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Subtask evaluated", extra={"subtask_id": "42"})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from pythonjsonlogger import jsonlogger

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler")

# Keys whose values are never written out
SECRET_KEY_MARKERS = ("token", "webhook_url", "password")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter adding ``timestamp``, ``environment`` and
    ``correlation_id`` (taken from ``tick_id`` when no request id is set).
    """

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", self._environment)

        correlation_id = getattr(record, "correlation_id", None) or log_record.get("tick_id")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key in list(log_record):
            if any(marker in key.lower() for marker in SECRET_KEY_MARKERS):
                log_record[key] = "***REDACTED***"


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """
    Route all logging through one JSON handler on stdout.

    Args:
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        environment: Stamped on every record
        quiet: Logger names raised to WARNING
    """
    numeric_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(CustomJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_context_logger(name: str, correlation_id: str | None = None) -> logging.Logger:
    """
    Logger that stamps every record with ``correlation_id``.

    Used with the tick id by the evaluator and with the request id by
    anything that wants to log outside the HTTP middleware.
    """
    logger = get_logger(name)
    if correlation_id:
        logger = logging.LoggerAdapter(logger, {"correlation_id": correlation_id})
    return logger


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "sla_tick", tick_id=tick_id):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
