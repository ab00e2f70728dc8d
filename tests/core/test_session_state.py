"""
Tests for the session state controller.
"""
from dataclasses import replace
from datetime import timedelta

import pytest

from libs.domain_types import SessionStatus

from assessment_engine.core.exceptions import StateConflictError
from assessment_engine.core.session_state import (
    can_transition,
    effective_status,
    generate_session_code,
    is_terminal,
    normalize_session_code,
    session_duration_hours,
    session_progress,
    time_remaining_seconds,
    transition,
    validate_session_schedule,
)


class TestEffectiveStatus:
    """Tests for effective_status."""

    def test_draft_before_start_stays_draft(self, session_entity, t0):
        """A draft session is not open before its start time."""
        assert (
            effective_status(session_entity, t0 - timedelta(minutes=1))
            == SessionStatus.DRAFT
        )

    def test_draft_inside_window_is_active(self, session_entity, t0):
        """A draft session becomes active once its window opens."""
        assert effective_status(session_entity, t0) == SessionStatus.ACTIVE
        assert (
            effective_status(session_entity, t0 + timedelta(hours=1))
            == SessionStatus.ACTIVE
        )

    def test_end_time_is_inclusive(self, session_entity):
        """The session is still active exactly at end_time."""
        assert (
            effective_status(session_entity, session_entity.end_time)
            == SessionStatus.ACTIVE
        )

    def test_past_end_time_expires(self, session_entity):
        """After end_time an auto-expiring session is expired."""
        later = session_entity.end_time + timedelta(seconds=1)
        assert effective_status(session_entity, later) == SessionStatus.EXPIRED

    def test_stored_active_past_end_expires(self, session_entity):
        """Stored active is overridden by the schedule."""
        active = replace(session_entity, status=SessionStatus.ACTIVE)
        later = session_entity.end_time + timedelta(minutes=5)
        assert effective_status(active, later) == SessionStatus.EXPIRED

    def test_auto_expire_disabled_keeps_status(self, session_entity):
        """Without auto_expire the session stays open past end_time."""
        manual = replace(
            session_entity, status=SessionStatus.ACTIVE, auto_expire=False
        )
        later = session_entity.end_time + timedelta(hours=3)
        assert effective_status(manual, later) == SessionStatus.ACTIVE

    @pytest.mark.parametrize(
        "stored", [SessionStatus.COMPLETED, SessionStatus.CANCELLED]
    )
    def test_manual_terminal_statuses_win(self, session_entity, t0, stored):
        """Completed and cancelled are returned as-is at any time."""
        closed = replace(session_entity, status=stored)
        for now in (
            t0 - timedelta(hours=1),
            t0 + timedelta(minutes=30),
            t0 + timedelta(days=2),
        ):
            assert effective_status(closed, now) == stored

    def test_monotonic_over_time(self, session_entity, t0):
        """Once expired, later instants never report an earlier state."""
        order = [SessionStatus.DRAFT, SessionStatus.ACTIVE, SessionStatus.EXPIRED]
        seen = []
        for minutes in range(-30, 200, 10):
            seen.append(
                effective_status(session_entity, t0 + timedelta(minutes=minutes))
            )
        indices = [order.index(s) for s in seen]
        assert indices == sorted(indices)
        assert seen[-1] == SessionStatus.EXPIRED

    def test_inverted_window_degrades_to_expired(self, session_entity, t0):
        """A malformed window never raises and reads as expired afterwards."""
        broken = replace(session_entity, end_time=t0 - timedelta(minutes=10))
        assert effective_status(broken, t0) == SessionStatus.EXPIRED

    def test_naive_now_treated_as_utc(self, session_entity, t0):
        """Naive datetimes are interpreted as UTC."""
        naive = (t0 + timedelta(minutes=5)).replace(tzinfo=None)
        assert effective_status(session_entity, naive) == SessionStatus.ACTIVE

    def test_idempotent(self, session_entity, t0):
        """Repeated calls give the same answer and do not mutate the session."""
        now = t0 + timedelta(minutes=10)
        first = effective_status(session_entity, now)
        second = effective_status(session_entity, now)
        assert first == second
        assert session_entity.status == SessionStatus.DRAFT


class TestTransitions:
    """Tests for the status state machine."""

    def test_allowed_transitions(self):
        """The documented edges are allowed."""
        assert can_transition(SessionStatus.DRAFT, SessionStatus.ACTIVE)
        assert can_transition(SessionStatus.DRAFT, SessionStatus.CANCELLED)
        assert can_transition(SessionStatus.ACTIVE, SessionStatus.EXPIRED)
        assert can_transition(SessionStatus.ACTIVE, SessionStatus.COMPLETED)
        assert can_transition(SessionStatus.ACTIVE, SessionStatus.CANCELLED)

    def test_disallowed_transitions(self):
        """Terminal states have no exits and draft cannot skip to completed."""
        assert not can_transition(SessionStatus.DRAFT, SessionStatus.COMPLETED)
        assert not can_transition(SessionStatus.DRAFT, SessionStatus.EXPIRED)
        for terminal in (
            SessionStatus.EXPIRED,
            SessionStatus.COMPLETED,
            SessionStatus.CANCELLED,
        ):
            assert is_terminal(terminal)
            for target in SessionStatus:
                assert not can_transition(terminal, target)

    def test_transition_from_effective_active(self, session_entity, t0):
        """A draft whose window opened can be completed."""
        result = transition(
            session_entity, SessionStatus.COMPLETED, t0 + timedelta(minutes=45)
        )
        assert result.status == SessionStatus.COMPLETED
        assert session_entity.status == SessionStatus.DRAFT

    def test_cancel_draft_before_start(self, session_entity, t0):
        """A draft can be cancelled before it opens."""
        result = transition(
            session_entity, SessionStatus.CANCELLED, t0 - timedelta(hours=1)
        )
        assert result.status == SessionStatus.CANCELLED

    def test_cannot_cancel_expired_session(self, session_entity):
        """An expired session is terminal."""
        later = session_entity.end_time + timedelta(minutes=1)
        with pytest.raises(StateConflictError) as exc_info:
            transition(session_entity, SessionStatus.CANCELLED, later)
        assert exc_info.value.reason == "invalid transition"

    def test_cannot_complete_before_opening(self, session_entity, t0):
        """draft -> completed is not an edge."""
        with pytest.raises(StateConflictError):
            transition(
                session_entity, SessionStatus.COMPLETED, t0 - timedelta(minutes=5)
            )


class TestSessionTiming:
    """Tests for progress, remaining time and duration helpers."""

    def test_progress_bounds(self, session_entity, t0):
        assert session_progress(session_entity, t0 - timedelta(hours=1)) == 0.0
        assert session_progress(session_entity, t0 + timedelta(hours=1)) == 50.0
        assert session_progress(session_entity, t0 + timedelta(hours=5)) == 100.0

    def test_progress_rounded(self, session_entity, t0):
        """Progress is rounded to 2 decimal places."""
        assert session_progress(session_entity, t0 + timedelta(minutes=20)) == 16.67

    def test_time_remaining_never_negative(self, session_entity, t0):
        assert time_remaining_seconds(session_entity, t0) == 7200
        assert (
            time_remaining_seconds(session_entity, t0 + timedelta(hours=3)) == 0
        )

    def test_duration_hours_rounds_up(self, t0):
        assert session_duration_hours(t0, t0 + timedelta(hours=2)) == 2
        assert session_duration_hours(t0, t0 + timedelta(minutes=90)) == 2
        assert session_duration_hours(t0, t0 + timedelta(minutes=30)) == 1


class TestValidateSessionSchedule:
    """Tests for validate_session_schedule."""

    def test_valid_schedule(self, t0):
        errors = validate_session_schedule(
            t0,
            t0 + timedelta(hours=2),
            now=t0 - timedelta(days=1),
            max_participants=50,
            session_code="INTAKE-2030",
        )
        assert errors == []

    def test_end_before_start(self, t0):
        errors = validate_session_schedule(t0, t0 - timedelta(minutes=1))
        assert [e.code for e in errors] == ["END_BEFORE_START"]
        assert errors[0].field == "end_time"

    def test_duration_limits(self, t0):
        short = validate_session_schedule(t0, t0 + timedelta(minutes=29))
        long = validate_session_schedule(t0, t0 + timedelta(hours=24, minutes=1))
        assert [e.code for e in short] == ["DURATION_TOO_SHORT"]
        assert [e.code for e in long] == ["DURATION_TOO_LONG"]

    def test_boundaries_are_accepted(self, t0):
        assert validate_session_schedule(t0, t0 + timedelta(minutes=30)) == []
        assert validate_session_schedule(t0, t0 + timedelta(hours=24)) == []

    def test_start_in_past(self, t0):
        errors = validate_session_schedule(
            t0, t0 + timedelta(hours=1), now=t0 + timedelta(minutes=1)
        )
        assert [e.code for e in errors] == ["START_IN_PAST"]

    def test_collects_every_violation(self, t0):
        """All problems are reported together."""
        errors = validate_session_schedule(
            t0,
            t0 + timedelta(minutes=10),
            now=t0,
            max_participants=0,
            session_code="a b",
        )
        assert {e.code for e in errors} == {
            "DURATION_TOO_SHORT",
            "START_IN_PAST",
            "MAX_PARTICIPANTS_OUT_OF_RANGE",
            "SESSION_CODE_CHARSET",
        }

    def test_session_code_length(self, t0):
        errors = validate_session_schedule(
            t0, t0 + timedelta(hours=1), session_code="AB"
        )
        assert [e.code for e in errors] == ["SESSION_CODE_LENGTH"]

    def test_max_participants_upper_bound(self, t0):
        errors = validate_session_schedule(
            t0, t0 + timedelta(hours=1), max_participants=1001
        )
        assert [e.code for e in errors] == ["MAX_PARTICIPANTS_OUT_OF_RANGE"]


class TestSessionCodes:
    """Tests for join code helpers."""

    def test_generated_code_shape(self):
        code = generate_session_code()
        assert len(code) == 8
        assert code.isalnum()
        assert code == code.upper()

    def test_custom_length(self):
        assert len(generate_session_code(12)) == 12

    def test_normalize(self):
        assert normalize_session_code("  intake01 ") == "INTAKE01"
