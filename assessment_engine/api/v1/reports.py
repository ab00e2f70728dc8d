"""
Session reporting endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assessment_engine.core.config import settings
from assessment_engine.core.datetime_utils import Clock, get_clock
from assessment_engine.core.reports import build_score_records, summarize_session
from assessment_engine.models import get_db
from assessment_engine.models.repository import (
    count_registrations,
    get_session_attempts,
    load_tests,
    to_attempt_entity,
    to_session_entity,
)
from assessment_engine.schemas.reports import (
    ScoreRecordResponse,
    SessionScoresResponse,
    SessionSummaryResponse,
)
from assessment_engine.api.v1.sessions import get_session_or_404

router = APIRouter()


@router.get("/sessions/{session_id}/summary", response_model=SessionSummaryResponse)
def get_session_summary(
    session_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Summarise a session's outcomes.

    Completion counts ``completed`` and ``auto_completed`` attempts;
    ``expired`` attempts are dropouts. Scores are scaled to 0-100 from the
    raw scores recorded on each attempt.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    row = get_session_or_404(db, session_id)
    session = to_session_entity(row)
    attempts = [to_attempt_entity(a) for a in get_session_attempts(db, session_id)]
    tests = load_tests(db, [m.test_id for m in session.modules])

    return summarize_session(
        session,
        attempts,
        tests,
        clock.now(),
        registered_count=count_registrations(db, session_id),
        passing_score=settings.DEFAULT_PASSING_SCORE,
    )


@router.get("/sessions/{session_id}/scores", response_model=SessionScoresResponse)
def get_session_scores(session_id: int, db: Session = Depends(get_db)):
    """
    Per-attempt scaled scores, grades and within-test percentiles.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    row = get_session_or_404(db, session_id)
    session = to_session_entity(row)
    attempts = [to_attempt_entity(a) for a in get_session_attempts(db, session_id)]
    tests = load_tests(db, [m.test_id for m in session.modules])

    records = build_score_records(attempts, tests, settings.DEFAULT_PASSING_SCORE)
    return SessionScoresResponse(
        session_id=session_id,
        scores=[
            ScoreRecordResponse(
                attempt_id=r.attempt_id,
                participant_id=r.participant_id,
                test_id=r.test_id,
                status=r.status.value,
                scaled_score=r.scaled_score,
                percentile=r.percentile,
                grade=r.grade,
                passed=r.passed,
            )
            for r in records
        ],
    )
