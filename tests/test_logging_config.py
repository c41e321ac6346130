"""
Tests for structured logging helpers
"""

import json
import logging

import pytest

from utils.logging_config import ErrorTracker, StructuredFormatter, log_execution_time


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


def make_logger(name):
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = RecordingHandler()
    logger.handlers = [handler]
    return logger, handler


class TestStructuredFormatter:
    """Test JSON log formatting"""

    def test_extra_fields_are_nested(self):
        record = logging.LogRecord("chat", logging.INFO, __file__, 10, "Conversation event", None, None)
        record.conversation_id = "c1"

        data = json.loads(StructuredFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "Conversation event"
        assert data["extra"] == {"conversation_id": "c1"}

    def test_exception_details(self):
        try:
            raise ValueError("broken")
        except ValueError:
            import sys
            record = logging.LogRecord("chat", logging.ERROR, __file__, 10, "failed", None, sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "broken"


class TestLogExecutionTime:
    """Test operation timing"""

    def test_success_logs_start_and_completion(self):
        logger, handler = make_logger("test.timing.success")

        with log_execution_time(logger, "summarization", conversation_id="c1"):
            pass

        assert [r.getMessage() for r in handler.records] == ["Starting summarization", "Completed summarization"]
        assert handler.records[1].status == "success"
        assert handler.records[1].conversation_id == "c1"

    def test_failure_is_logged_and_reraised(self):
        logger, handler = make_logger("test.timing.failure")

        with pytest.raises(RuntimeError):
            with log_execution_time(logger, "document ingestion"):
                raise RuntimeError("fetch failed")

        assert handler.records[-1].levelno == logging.ERROR
        assert handler.records[-1].error_type == "RuntimeError"


class TestErrorTracker:
    """Test error counting"""

    def test_counts_errors_by_type_and_context(self):
        logger, _ = make_logger("test.tracker")
        tracker = ErrorTracker(logger)

        tracker.track_error(ValueError("a"), "chat model call")
        tracker.track_error(ValueError("b"), "chat model call")
        tracker.track_error(KeyError("c"), "summarization")

        summary = tracker.get_error_summary()
        assert summary["total_errors"] == 3
        assert summary["unique_errors"] == 2
        assert summary["error_breakdown"]["ValueError:chat model call"] == 2
