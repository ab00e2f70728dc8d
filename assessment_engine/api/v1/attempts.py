"""
Attempt endpoints: snapshots and answer/finish/tick events.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assessment_engine.core.attempt_tracker import (
    AttemptUpdate,
    expected_completion_at,
    is_time_expired,
    progress_percentage,
    time_remaining_seconds,
)
from assessment_engine.core.datetime_utils import Clock, get_clock
from assessment_engine.core.db_error_handling import handle_db_error
from assessment_engine.core.error_responses import ErrorMessages, raise_not_found
from assessment_engine.core.logging_config import attempt_log_fields
from assessment_engine.models import get_db
from assessment_engine.models.models import ModuleAttempt
from assessment_engine.models.repository import (
    apply_attempt_event,
    get_attempt_row,
    to_attempt_entity,
    to_test_info,
)
from assessment_engine.schemas.attempts import (
    AttemptEventRequest,
    AttemptResponse,
    AttemptUpdateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def build_attempt_response(row: ModuleAttempt, now: datetime) -> AttemptResponse:
    """Snapshot of a stored attempt with derived timing fields."""
    attempt = to_attempt_entity(row)
    test = to_test_info(row.test)
    return AttemptResponse(
        id=row.id,
        session_id=row.session_id,
        participant_id=row.participant_id,
        test_id=row.test_id,
        status=attempt.status.value,
        start_time=attempt.start_time,
        end_time=attempt.end_time,
        time_spent=attempt.time_spent,
        answered_questions=attempt.answered_questions,
        total_questions=test.total_questions,
        last_activity_at=attempt.last_activity_at,
        progress_percentage=progress_percentage(attempt, test),
        time_remaining_seconds=time_remaining_seconds(attempt, test, now),
        expected_completion_at=expected_completion_at(attempt, test),
        is_time_expired=is_time_expired(attempt, test, now),
    )


def build_update_response(
    row: ModuleAttempt, update: AttemptUpdate, now: datetime
) -> AttemptUpdateResponse:
    return AttemptUpdateResponse(
        attempt=build_attempt_response(row, now),
        changed=update.changed,
        already_finalized=update.already_finalized,
        finalized_by=update.finalized_by,
    )


@router.get("/{attempt_id}", response_model=AttemptResponse)
def get_attempt(
    attempt_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get an attempt snapshot.

    The stored record is returned as-is; timing fields are derived for the
    current time. Use a ``tick`` event to persist a time-based expiry.

    Raises:
        HTTPException: 404 if the attempt does not exist
    """
    row = get_attempt_row(db, attempt_id)
    if row is None:
        raise_not_found(ErrorMessages.ATTEMPT_NOT_FOUND)
    return build_attempt_response(row, clock.now())


@router.post("/{attempt_id}/events", response_model=AttemptUpdateResponse)
def post_attempt_event(
    attempt_id: int,
    request: AttemptEventRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Apply an ``answer``, ``finish`` or ``tick`` event to an attempt.

    Time limits and the parent session's window are enforced before the
    event itself. Events on an attempt that is already terminal succeed
    without changing it (``already_finalized`` is true).

    Raises:
        HTTPException: 404 if the attempt does not exist
        StateConflictError: 409 if the attempt was never started
        ValidationError: 422 if answered_count is out of range
    """
    now = clock.now()
    with handle_db_error(db, "apply attempt event"):
        row = get_attempt_row(db, attempt_id, for_update=True)
        if row is None:
            raise_not_found(ErrorMessages.ATTEMPT_NOT_FOUND)

        update = apply_attempt_event(
            db, row, request.event, now, answered_count=request.answered_count
        )
        db.commit()
        db.refresh(row)

        logger.info(
            f"Attempt event {request.event.value} applied",
            extra=attempt_log_fields(
                update.attempt,
                event=request.event.value,
                finalized_by=update.finalized_by,
            ),
        )
        return build_update_response(row, update, now)
