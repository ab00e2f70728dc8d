"""Tests for shared domain types package."""

import json

from libs.domain_types import (
    AttemptEvent,
    AttemptStatus,
    RosterStatus,
    SessionStatus,
    TrendDirection,
)


class TestSessionStatus:
    """Tests for SessionStatus enum."""

    def test_values(self):
        assert {s.value for s in SessionStatus} == {
            "draft",
            "active",
            "expired",
            "completed",
            "cancelled",
        }

    def test_str_mixin(self):
        assert SessionStatus("active") == SessionStatus.ACTIVE
        assert SessionStatus.ACTIVE == "active"

    def test_json_serializable(self):
        assert json.dumps(SessionStatus.EXPIRED) == '"expired"'


class TestAttemptStatus:
    """Tests for AttemptStatus enum."""

    def test_values(self):
        assert {s.value for s in AttemptStatus} == {
            "not_started",
            "in_progress",
            "completed",
            "auto_completed",
            "expired",
        }

    def test_count(self):
        assert len(AttemptStatus) == 5


class TestAttemptEvent:
    """Tests for AttemptEvent enum."""

    def test_values(self):
        assert [e.value for e in AttemptEvent] == ["answer", "finish", "tick"]

    def test_lookup_by_value(self):
        assert AttemptEvent("finish") is AttemptEvent.FINISH


class TestRosterStatus:
    """Tests for RosterStatus enum."""

    def test_values(self):
        assert RosterStatus.NO_SHOW.value == "no_show"
        assert len(RosterStatus) == 4


class TestTrendDirection:
    """Tests for TrendDirection enum."""

    def test_values(self):
        assert {t.value for t in TrendDirection} == {"up", "down", "stable"}
