"""
Tests for session summaries and score records.
"""
from dataclasses import replace
from datetime import timedelta

import pytest

from libs.domain_types import AttemptStatus, SessionStatus

from assessment_engine.core.entities import Attempt
from assessment_engine.core.reports import build_score_records, summarize_session


def _attempt(attempt_id, participant_id, test_id, status, raw_score=None):
    return Attempt(
        id=attempt_id,
        participant_id=participant_id,
        test_id=test_id,
        session_id=1,
        status=status,
        raw_score=raw_score,
    )


@pytest.fixture
def tests_by_id(logic_test, verbal_test):
    return {logic_test.id: logic_test, verbal_test.id: verbal_test}


@pytest.fixture
def attempts():
    """Three participants across both modules of the session."""
    return [
        _attempt(1, 101, 1, AttemptStatus.COMPLETED, raw_score=18),
        _attempt(2, 102, 1, AttemptStatus.AUTO_COMPLETED, raw_score=12),
        _attempt(3, 103, 1, AttemptStatus.EXPIRED),
        _attempt(4, 101, 2, AttemptStatus.COMPLETED, raw_score=6),
        _attempt(5, 102, 2, AttemptStatus.IN_PROGRESS),
    ]


class TestBuildScoreRecords:
    """Tests for build_score_records."""

    def test_scored_attempts(self, attempts, tests_by_id):
        records = build_score_records(attempts, tests_by_id, passing_score=60)

        assert [r.attempt_id for r in records] == [1, 2, 3, 4, 5]

        top = records[0]
        assert top.scaled_score == 90.0
        assert top.grade == "A"
        assert top.passed
        assert top.percentile == 50.0

        partial = records[1]
        assert partial.status == AttemptStatus.AUTO_COMPLETED
        assert partial.scaled_score == 60.0
        assert partial.grade == "D"
        assert partial.percentile == 0.0

    def test_expired_and_open_attempts_are_unscored(self, attempts, tests_by_id):
        records = build_score_records(attempts, tests_by_id)
        for record in (records[2], records[4]):
            assert record.scaled_score is None
            assert record.percentile is None
            assert record.grade is None
            assert record.passed is None

    def test_test_pass_mark_overrides_fallback(self, attempts, tests_by_id):
        """The verbal test requires 70; a scaled 60 fails there."""
        records = build_score_records(attempts, tests_by_id, passing_score=50)
        verbal = records[3]
        assert verbal.scaled_score == 60.0
        assert not verbal.passed
        assert verbal.grade == "E"

    def test_unknown_test_is_unscored(self, tests_by_id):
        records = build_score_records(
            [_attempt(9, 101, 99, AttemptStatus.COMPLETED, raw_score=5)], tests_by_id
        )
        assert records[0].scaled_score is None


class TestSummarizeSession:
    """Tests for summarize_session."""

    def test_counts_and_rates(self, session_entity, attempts, tests_by_id, t0):
        summary = summarize_session(
            session_entity,
            attempts,
            tests_by_id,
            t0 + timedelta(hours=1),
            registered_count=4,
            passing_score=60,
        )

        assert summary["status"] == SessionStatus.ACTIVE.value
        assert summary["progress_percentage"] == 50.0
        assert summary["total_attempts"] == 5
        assert summary["completed_attempts"] == 3
        assert summary["expired_attempts"] == 1
        assert summary["in_progress_attempts"] == 1
        assert summary["completion_rate"] == 60.0
        assert summary["participants"] == 3
        assert summary["attendance_rate"] == 75.0

    def test_modules_in_schedule_order(
        self, session_entity, attempts, tests_by_id, t0
    ):
        summary = summarize_session(
            session_entity, attempts, tests_by_id, t0 + timedelta(hours=1)
        )
        modules = summary["modules"]
        assert [m["test_id"] for m in modules] == [1, 2]

        logic = modules[0]
        assert logic["attempts"] == 3
        assert logic["completed"] == 2
        assert logic["expired"] == 1
        assert logic["completion_rate"] == 66.67
        assert logic["scores"]["mean"] == 75.0

    def test_weighted_average_and_trend(
        self, session_entity, attempts, tests_by_id, t0
    ):
        weighted = replace(
            session_entity,
            modules=[replace(m, weight=3.0 if m.test_id == 1 else 1.0)
                     for m in session_entity.modules],
        )
        summary = summarize_session(
            weighted, attempts, tests_by_id, t0 + timedelta(hours=1)
        )
        # (75 * 3 + 60 * 1) / 4
        assert summary["weighted_average"] == 71.25
        assert summary["score_trend"] == "down"
        assert summary["scores"]["count"] == 3

    def test_category_diversity(self, session_entity, attempts, tests_by_id, t0):
        summary = summarize_session(
            session_entity, attempts, tests_by_id, t0 + timedelta(hours=1)
        )
        # 3 reasoning vs 2 verbal started attempts
        assert 0.9 < summary["category_diversity"] <= 1.0

    def test_empty_session(self, session_entity, tests_by_id, t0):
        summary = summarize_session(session_entity, [], tests_by_id, t0)
        assert summary["completion_rate"] == 0.0
        assert summary["attendance_rate"] is None
        assert summary["weighted_average"] is None
        assert summary["category_diversity"] == 0.0
        assert summary["score_trend"] == "stable"
