"""
Tests for structured logging configuration and JSON formatter.
"""
import json
import logging

from libs.domain_types import AttemptStatus

from assessment_engine.core.entities import Attempt
from assessment_engine.core.logging_config import (
    JSONFormatter,
    attempt_log_fields,
    build_logging_config,
    request_id_context,
)


def _record(level=logging.INFO, msg="Test message", **extra):
    record = logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the JSONFormatter class."""

    def test_basic_log_entry(self):
        """Basic entries carry timestamp, level, logger and message."""
        log_entry = json.loads(JSONFormatter().format(_record()))

        assert "timestamp" in log_entry
        assert log_entry["level"] == "INFO"
        assert log_entry["logger"] == "test_logger"
        assert log_entry["message"] == "Test message"
        assert "source" not in log_entry

    def test_request_id_from_context(self):
        token = request_id_context.set("req-42")
        try:
            log_entry = json.loads(JSONFormatter().format(_record()))
            assert log_entry["request_id"] == "req-42"
        finally:
            request_id_context.reset(token)

    def test_no_request_id_when_not_set(self):
        token = request_id_context.set(None)
        try:
            log_entry = json.loads(JSONFormatter().format(_record()))
            assert "request_id" not in log_entry
        finally:
            request_id_context.reset(token)

    def test_structured_extras_included(self):
        record = _record(session_id=7, participant_id=101, attempt_id=3, unrelated="x")
        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["session_id"] == 7
        assert log_entry["participant_id"] == 101
        assert log_entry["attempt_id"] == 3
        assert "unrelated" not in log_entry

    def test_error_entries_carry_source(self):
        log_entry = json.loads(JSONFormatter().format(_record(level=logging.ERROR)))
        assert log_entry["source"] == "test.py:10"

    def test_none_extras_are_dropped(self):
        log_entry = json.loads(JSONFormatter().format(_record(attempt_id=None)))
        assert "attempt_id" not in log_entry


class TestAttemptLogFields:
    """Tests for attempt_log_fields."""

    def test_ids_and_status(self):
        attempt = Attempt(
            id=3,
            participant_id=101,
            test_id=1,
            session_id=7,
            status=AttemptStatus.EXPIRED,
        )
        fields = attempt_log_fields(attempt, finalized_by="time_limit", event=None)

        assert fields == {
            "attempt_id": 3,
            "session_id": 7,
            "participant_id": 101,
            "test_id": 1,
            "attempt_status": "expired",
            "finalized_by": "time_limit",
        }

    def test_fields_render_in_json(self):
        attempt = Attempt(
            id=3,
            participant_id=101,
            test_id=1,
            session_id=7,
            status=AttemptStatus.IN_PROGRESS,
        )
        record = _record(**attempt_log_fields(attempt, event="answer"))
        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["event"] == "answer"
        assert log_entry["attempt_status"] == "in_progress"
        assert log_entry["test_id"] == 1


class TestBuildLoggingConfig:
    """Tests for the dictConfig payload."""

    def test_json_output_selects_json_formatter(self):
        config = build_logging_config(logging.INFO, json_output=True)
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"] is JSONFormatter

    def test_text_output(self):
        config = build_logging_config(logging.DEBUG, json_output=False)
        assert config["handlers"]["console"]["formatter"] == "default"
        assert config["handlers"]["console"]["level"] == logging.DEBUG

    def test_engine_logger_does_not_propagate(self):
        config = build_logging_config(logging.INFO, json_output=False)
        engine_logger = config["loggers"]["assessment_engine"]
        assert engine_logger["propagate"] is False
        assert config["loggers"]["sqlalchemy.engine"]["level"] == logging.WARNING
