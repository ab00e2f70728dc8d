"""
Session endpoints: snapshots, module validation, admission, participant
progress and module start.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from libs.domain_types import AttemptEvent, AttemptStatus

from assessment_engine.core.attempt_tracker import (
    advance_attempt,
    expected_completion_at,
    progress_percentage,
    time_limit_seconds,
    time_remaining_seconds as attempt_time_remaining,
)
from assessment_engine.core.datetime_utils import Clock, get_clock
from assessment_engine.core.db_error_handling import handle_db_error
from assessment_engine.core.entities import SessionModule
from assessment_engine.core.error_responses import ErrorMessages, raise_not_found
from assessment_engine.core.module_scheduler import (
    next_module,
    ordered_sequence,
    required_modules_finished,
    validate_modules,
)
from assessment_engine.core.session_state import (
    effective_status,
    session_duration_hours,
    session_progress,
    time_remaining_seconds,
)
from assessment_engine.models import get_db
from assessment_engine.models.models import AssessmentSession
from assessment_engine.models.repository import (
    admit_participant,
    get_participant_attempts,
    get_registration,
    get_session_by_code,
    get_session_row,
    load_tests,
    start_module_attempt,
    to_attempt_entity,
    to_session_entity,
)
from assessment_engine.schemas.attempts import AttemptUpdateResponse
from assessment_engine.schemas.sessions import (
    AdmissionResponse,
    FieldErrorSchema,
    ModuleInput,
    ModuleProgressResponse,
    ModuleValidationRequest,
    ModuleValidationResponse,
    ParticipantProgressResponse,
    SessionModuleResponse,
    SessionResponse,
)
from assessment_engine.api.v1.attempts import build_update_response

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_or_404(
    db: Session, session_id: int, for_update: bool = False
) -> AssessmentSession:
    row = get_session_row(db, session_id, for_update=for_update)
    if row is None:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
    return row


def build_session_response(
    db: Session, row: AssessmentSession, now: datetime
) -> SessionResponse:
    """Session snapshot with its effective status at ``now``."""
    session = to_session_entity(row)
    modules = ordered_sequence(session.modules)
    tests = load_tests(db, [m.test_id for m in modules])

    module_responses = []
    for module in modules:
        test = tests[module.test_id]
        module_responses.append(
            SessionModuleResponse(
                test_id=module.test_id,
                sequence=module.sequence,
                is_required=module.is_required,
                weight=module.weight,
                test_name=test.name,
                category=test.category,
                module_type=test.module_type,
                time_limit=test.time_limit,
                total_questions=test.total_questions,
            )
        )

    return SessionResponse(
        id=row.id,
        name=session.name,
        session_code=session.session_code,
        target_position=session.target_position,
        start_time=session.start_time,
        end_time=session.end_time,
        max_participants=session.max_participants,
        current_participants=session.current_participants,
        is_full=session.is_full,
        stored_status=session.status.value,
        status=effective_status(session, now).value,
        auto_expire=session.auto_expire,
        allow_late_entry=session.allow_late_entry,
        progress_percentage=session_progress(session, now),
        time_remaining_seconds=time_remaining_seconds(session, now),
        duration_hours=session_duration_hours(session.start_time, session.end_time),
        modules=module_responses,
    )


@router.get("/code/{session_code}", response_model=SessionResponse)
def get_session_by_join_code(
    session_code: str,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Look up a session by its join code (case-insensitive).

    Raises:
        HTTPException: 404 if no session uses the code
    """
    row = get_session_by_code(db, session_code)
    if row is None:
        raise_not_found(ErrorMessages.session_code_not_found(session_code))
    return build_session_response(db, row, clock.now())


@router.post("/modules/validate", response_model=ModuleValidationResponse)
def validate_session_modules(request: ModuleValidationRequest):
    """
    Validate a module configuration before it is attached to a session.

    Returns every violation at once rather than stopping at the first one.
    """
    modules = [
        SessionModule(
            test_id=m.test_id,
            sequence=m.sequence,
            is_required=m.is_required,
            weight=m.weight,
        )
        for m in request.modules
    ]
    errors = validate_modules(modules)
    if errors:
        return ModuleValidationResponse(
            valid=False,
            errors=[FieldErrorSchema(**e.to_dict()) for e in errors],
        )

    return ModuleValidationResponse(
        valid=True,
        ordered=[
            ModuleInput(
                test_id=m.test_id,
                sequence=m.sequence,
                is_required=m.is_required,
                weight=m.weight,
            )
            for m in ordered_sequence(modules)
        ],
    )


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get a session snapshot.

    ``status`` is the effective status at request time; ``stored_status`` is
    what is persisted. They differ until a write path or the maintenance
    sweep writes the derived value back.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    row = get_session_or_404(db, session_id)
    return build_session_response(db, row, clock.now())


@router.post(
    "/{session_id}/participants/{participant_id}/enter",
    response_model=AdmissionResponse,
)
def enter_session(
    session_id: int,
    participant_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Admit a participant into a session.

    The session row is locked for the duration of the check so concurrent
    entries cannot push ``current_participants`` past capacity. Re-entering
    to resume never counts against capacity.

    Raises:
        HTTPException: 404 if the session does not exist
        NotRegisteredError: 403 if the participant is not on the roster
        StateConflictError: 409 if the session is not open or is full
    """
    now = clock.now()
    with handle_db_error(db, "admit participant"):
        row = get_session_or_404(db, session_id, for_update=True)
        decision, first_admission = admit_participant(db, row, participant_id, now)
        db.commit()
        db.refresh(row)

        return AdmissionResponse(
            session_id=row.id,
            participant_id=participant_id,
            allow=decision.allow,
            reason=decision.reason,
            first_admission=first_admission,
            current_participants=row.current_participants,
            status=effective_status(to_session_entity(row), now).value,
        )


@router.get(
    "/{session_id}/participants/{participant_id}/progress",
    response_model=ParticipantProgressResponse,
)
def get_participant_progress(
    session_id: int,
    participant_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Get a participant's progress through the session's modules, in order.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    now = clock.now()
    row = get_session_or_404(db, session_id)
    session = to_session_entity(row)
    modules = ordered_sequence(session.modules)
    tests = load_tests(db, [m.test_id for m in modules])
    registration = get_registration(db, session_id, participant_id)
    attempt_rows = get_participant_attempts(db, session_id, participant_id)
    # Time rules applied in memory only; nothing is written back on GET
    attempts = {
        tid: advance_attempt(
            to_attempt_entity(a),
            AttemptEvent.TICK,
            now,
            test=tests[tid],
            session=session,
        ).attempt
        for tid, a in attempt_rows.items()
        if tid in tests
    }

    module_progress = []
    for module in modules:
        test = tests[module.test_id]
        attempt = attempts.get(module.test_id)
        if attempt is None:
            module_progress.append(
                ModuleProgressResponse(
                    test_id=module.test_id,
                    sequence=module.sequence,
                    is_required=module.is_required,
                    test_name=test.name,
                    status=AttemptStatus.NOT_STARTED.value,
                    total_questions=test.total_questions,
                    time_remaining_seconds=time_limit_seconds(test),
                )
            )
            continue

        module_progress.append(
            ModuleProgressResponse(
                test_id=module.test_id,
                sequence=module.sequence,
                is_required=module.is_required,
                test_name=test.name,
                attempt_id=attempt.id,
                status=attempt.status.value,
                answered_questions=attempt.answered_questions,
                total_questions=test.total_questions,
                progress_percentage=progress_percentage(attempt, test),
                time_spent=attempt.time_spent,
                time_remaining_seconds=attempt_time_remaining(attempt, test, now),
                expected_completion_at=expected_completion_at(attempt, test),
            )
        )

    upcoming = next_module(modules, attempts)
    return ParticipantProgressResponse(
        session_id=session_id,
        participant_id=participant_id,
        session_status=effective_status(session, now).value,
        registered=registration is not None,
        roster_status=registration.status.value if registration else None,
        modules=module_progress,
        next_test_id=upcoming.test_id if upcoming else None,
        required_modules_finished=required_modules_finished(modules, attempts),
    )


@router.post(
    "/{session_id}/participants/{participant_id}/tests/{test_id}/start",
    response_model=AttemptUpdateResponse,
)
def start_test_module(
    session_id: int,
    participant_id: int,
    test_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Start (or resume) a participant's attempt at one module.

    Entering a module re-runs admission for the session. Starting an
    attempt that is already in progress returns it unchanged; starting one
    that is finished reports ``already_finalized``.

    Raises:
        HTTPException: 404 if the session does not exist or the test is not
            one of its modules
        NotRegisteredError: 403 if the participant is not on the roster
        StateConflictError: 409 if the session is not open, is full, or the
            module is out of order
    """
    now = clock.now()
    with handle_db_error(db, "start module attempt"):
        row = get_session_or_404(db, session_id, for_update=True)
        if test_id not in {m.test_id for m in row.modules}:
            raise_not_found(ErrorMessages.MODULE_NOT_IN_SESSION)

        attempt_row, update = start_module_attempt(
            db, row, participant_id, test_id, now
        )
        db.commit()
        db.refresh(attempt_row)

        return build_update_response(attempt_row, update, now)
