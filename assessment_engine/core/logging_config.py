"""
Logging setup for the engine, the API and the maintenance script.

Every entry can carry the ids of the session, participant and attempt it
concerns. In JSON mode those become top-level fields, so a participant's
path through a session can be filtered out of aggregated logs.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from assessment_engine.core.config import settings
from assessment_engine.core.entities import Attempt

# Set by RequestLoggingMiddleware for the lifetime of a request
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# LogRecord extras promoted to JSON fields
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
    "session_id",
    "participant_id",
    "attempt_id",
    "test_id",
    "event",
    "attempt_status",
    "finalized_by",
    "error_id",
)


def attempt_log_fields(attempt: Attempt, **extra: Any) -> Dict[str, Any]:
    """
    Structured ``extra`` for a log call about one attempt.

    Args:
        attempt: Attempt the entry is about
        **extra: Additional fields (``event``, ``finalized_by``...)

    Returns:
        Dict suitable for ``logger.info(..., extra=...)``
    """
    fields: Dict[str, Any] = {
        "attempt_id": attempt.id,
        "session_id": attempt.session_id,
        "participant_id": attempt.participant_id,
        "test_id": attempt.test_id,
        "attempt_status": attempt.status.value,
    }
    fields.update({k: v for k, v in extra.items() if v is not None})
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def build_logging_config(log_level: int, json_output: bool) -> Dict[str, Any]:
    """
    dictConfig payload for the engine.

    The ``assessment_engine`` logger does not propagate to the root, so its
    records are written exactly once.
    """
    handler = {
        "class": "logging.StreamHandler",
        "level": log_level,
        "formatter": "json" if json_output else "default",
        "stream": sys.stdout,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {"()": JSONFormatter},
        },
        "handlers": {"console": handler},
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            "assessment_engine": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": logging.WARNING if settings.DEBUG else logging.INFO,
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(json_output: Optional[bool] = None) -> None:
    """
    Configure logging for the API or a script.

    Args:
        json_output: Force JSON (True) or text (False). Defaults to JSON in
            production and text elsewhere.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    if json_output is None:
        json_output = settings.ENV == "production"
    logging.config.dictConfig(build_logging_config(log_level, json_output))
