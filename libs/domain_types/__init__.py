"""Shared domain types for the assessment engine.

This package is the single source of truth for domain enums used across
the core engine, the persistence models, and (indirectly via OpenAPI) the
API clients.

Usage:
    from libs.domain_types import SessionStatus, AttemptStatus
"""

import enum


class SessionStatus(str, enum.Enum):
    """Assessment session status."""

    DRAFT = "draft"
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttemptStatus(str, enum.Enum):
    """Per-module attempt status."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    AUTO_COMPLETED = "auto_completed"  # closed by time limit with answers
    EXPIRED = "expired"  # closed by time with no answers


class AttemptEvent(str, enum.Enum):
    """Events that advance an in-progress attempt."""

    ANSWER = "answer"
    FINISH = "finish"
    TICK = "tick"


class RosterStatus(str, enum.Enum):
    """Participant registration status within a session roster."""

    REGISTERED = "registered"
    ADMITTED = "admitted"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class TrendDirection(str, enum.Enum):
    """Direction of a score or volume trend."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


__all__ = [
    "SessionStatus",
    "AttemptStatus",
    "AttemptEvent",
    "RosterStatus",
    "TrendDirection",
]
