"""Tests for structured logging helpers."""

import json
import logging
import sys

import pytest

from strata.observability.logging import (
    StructuredFormatter,
    configure_structured_logging,
    log_event,
    timed_operation,
)

LOGGER_NAME = "strata.tests.observability"


@pytest.fixture
def strata_logger():
    return logging.getLogger(LOGGER_NAME)


class TestLogEvent:
    """Tests for log_event()."""

    def test_splits_metrics_and_metadata(self, strata_logger, caplog):
        """Test numeric fields become metrics and the rest metadata."""
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_event(strata_logger, "cache.evict", key="k", tier="cold", size_bytes=2048)

        record = caplog.records[-1]
        assert record.getMessage() == "cache.evict"
        assert record.event_type == "cache.evict"
        assert record.metrics == {"size_bytes": 2048}
        assert record.metadata == {"key": "k", "tier": "cold"}

    def test_bools_are_metadata(self, strata_logger, caplog):
        """Test booleans are not treated as numeric metrics."""
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_event(strata_logger, "cache.set", compressed=True)

        record = caplog.records[-1]
        assert record.metrics is None
        assert record.metadata == {"compressed": True}

    def test_skipped_when_level_disabled(self, strata_logger, caplog):
        """Test nothing is emitted below the logger's level."""
        with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
            log_event(strata_logger, "cache.set", key="k")
        assert caplog.records == []

    def test_custom_message(self, strata_logger, caplog):
        """Test an explicit message replaces the event type."""
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            log_event(strata_logger, "cache.clear", level=logging.INFO, message="Cleared")
        assert caplog.records[-1].getMessage() == "Cleared"


class TestTimedOperation:
    """Tests for timed_operation()."""

    def test_logs_completion_with_context(self, strata_logger, caplog):
        """Test completion record includes latency and ctx fields."""
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with timed_operation(strata_logger, "cache.cleanup", source="test") as ctx:
                ctx["removed"] = 3

        record = caplog.records[-1]
        assert record.event_type == "cache.cleanup.complete"
        assert record.metrics["removed"] == 3
        assert "latency_ms" in record.metrics
        assert record.metadata == {"source": "test"}

    def test_logs_failure_and_reraises(self, strata_logger, caplog):
        """Test failures are logged at error level and propagate."""
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with pytest.raises(RuntimeError):
                with timed_operation(strata_logger, "cache.tier_sweep"):
                    raise RuntimeError("boom")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.event_type == "cache.tier_sweep.failed"


class TestStructuredFormatter:
    """Tests for JSON output."""

    def _record(self, **extra):
        record = logging.LogRecord(
            name="strata.cache.core",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="cache.set",
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        """Test standard fields are present and empty extras omitted."""
        entry = json.loads(StructuredFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "strata.cache.core"
        assert entry["message"] == "cache.set"
        assert "timestamp" in entry
        assert "metrics" not in entry
        assert "event" not in entry

    def test_structured_fields(self):
        """Test event type, metrics and metadata are included."""
        record = self._record(
            event_type="cache.set", metrics={"size_bytes": 10}, metadata={"tier": "hot"}
        )
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["event"] == "cache.set"
        assert entry["metrics"] == {"size_bytes": 10}
        assert entry["metadata"] == {"tier": "hot"}

    def test_exception_info(self):
        """Test exceptions are summarized by type and message."""
        try:
            raise ValueError("bad value")
        except ValueError:
            record = self._record()
            record.exc_info = sys.exc_info()

        entry = json.loads(StructuredFormatter().format(record))
        assert entry["error"] == {"type": "ValueError", "message": "bad value"}


class TestConfigureStructuredLogging:
    """Tests for configure_structured_logging()."""

    def test_installs_single_json_handler(self):
        """Test the logger gets exactly one handler with the JSON formatter."""
        name = "strata.tests.configure"
        log = configure_structured_logging(logging.DEBUG, logger_name=name)
        configure_structured_logging(logging.DEBUG, logger_name=name)

        assert log is logging.getLogger(name)
        assert log.level == logging.DEBUG
        assert len(log.handlers) == 1
        assert isinstance(log.handlers[0].formatter, StructuredFormatter)
