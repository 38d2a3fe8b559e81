"""Structured logging and timing utilities for Strata.

Provides:
- StructuredFormatter: JSON log formatter for structured log output
- timed_operation: Context manager that logs operation timing
- log_event: Helper for structured event logging with metrics

Uses stdlib logging only (no external dependencies). Strata is a library, so
nothing here touches the root logger unless asked to.

Usage:
    from strata.observability.logging import timed_operation, log_event

    with timed_operation(logger, "cache.cleanup") as ctx:
        ctx["removed"] = cache.cleanup_expired()

    log_event(logger, "cache.evict", key="report:42", tier="cold", size_bytes=2048)
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

LIBRARY_LOGGER = "strata"


def _split_fields(fields: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split fields into numeric metrics and everything else."""
    metrics = {
        k: v for k, v in fields.items() if isinstance(v, (int, float)) and not isinstance(v, bool)
    }
    metadata = {k: v for k, v in fields.items() if k not in metrics}
    return metrics, metadata


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Outputs log records as single-line JSON with standard fields:
    timestamp, level, logger, message, plus any extra fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Extra structured fields set via log_event or extra={}
        for attr, name in (("event_type", "event"), ("metrics", "metrics"), ("metadata", "metadata")):
            value = getattr(record, attr, None)
            if value:
                entry[name] = value

        if record.exc_info and record.exc_info[1]:
            entry["error"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


@contextmanager
def timed_operation(
    log: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **extra: Any,
) -> Iterator[dict[str, Any]]:
    """Context manager that logs operation completion with timing.

    Args:
        log: Logger instance.
        operation: Operation name (e.g., "cache.tier_sweep").
        level: Log level for the completion message.
        **extra: Additional key-value pairs included in the log.

    Yields:
        dict that can be updated with additional fields during the operation.

    Example:
        with timed_operation(logger, "cache.cleanup") as ctx:
            ctx["removed"] = removed
    """
    ctx: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield ctx
    except Exception:
        elapsed_ms = (time.perf_counter() - start) * 1000
        log.error(
            "%s failed after %.1fms",
            operation,
            elapsed_ms,
            exc_info=True,
            extra={
                "event_type": f"{operation}.failed",
                "metrics": {"latency_ms": round(elapsed_ms, 1)},
                "metadata": extra,
            },
        )
        raise

    elapsed_ms = (time.perf_counter() - start) * 1000
    metrics, metadata = _split_fields({**extra, **ctx})
    log.log(
        level,
        "%s completed in %.1fms",
        operation,
        elapsed_ms,
        extra={
            "event_type": f"{operation}.complete",
            "metrics": {"latency_ms": round(elapsed_ms, 1), **metrics},
            "metadata": metadata,
        },
    )


def log_event(
    log: logging.Logger,
    event_type: str,
    level: int = logging.DEBUG,
    message: str | None = None,
    **fields: Any,
) -> None:
    """Log a structured event with typed fields.

    Args:
        log: Logger instance.
        event_type: Event type string (e.g., "cache.promote").
        level: Log level.
        message: Optional human-readable message. Defaults to event_type.
        **fields: Arbitrary key-value fields. Numeric values go to metrics,
                  others go to metadata.
    """
    if not log.isEnabledFor(level):
        return

    metrics, metadata = _split_fields(fields)
    log.log(
        level,
        message or event_type,
        extra={
            "event_type": event_type,
            "metrics": metrics or None,
            "metadata": metadata or None,
        },
    )


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str = LIBRARY_LOGGER,
) -> logging.Logger:
    """Attach a JSON handler to the Strata logger.

    Args:
        level: Log level for the logger.
        logger_name: Logger to configure. Defaults to the package logger.

    Returns:
        The configured logger.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    log = logging.getLogger(logger_name)
    log.setLevel(level)
    # Replace existing handlers to avoid duplicate output
    log.handlers = [handler]
    return log
