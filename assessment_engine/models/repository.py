"""
Persistence adapter between SQLAlchemy rows and the core engine.

Every write path follows the same shape:
1. Load (and lock, where shared state is involved) the rows
2. Convert them into ``core.entities`` records
3. Call the pure engine function with an explicit ``now``
4. Copy the result back onto the rows and flush

Committing is left to the caller so an endpoint can wrap the whole unit of
work in ``handle_db_error``.

Admission is the one place where concurrent requests race on shared state
(``current_participants``). ``get_session_row(..., for_update=True)`` takes a
``SELECT ... FOR UPDATE`` row lock so the capacity check and the increment
happen inside the same transaction. SQLite ignores the lock clause; its
database-level write lock serialises writers instead.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, TypedDict

from sqlalchemy import func
from sqlalchemy.orm import Session as DBSession

from libs.domain_types import AttemptEvent, AttemptStatus, RosterStatus, SessionStatus

from assessment_engine.core.admission import Decision, require_entry
from assessment_engine.core.attempt_tracker import (
    AttemptUpdate,
    advance_attempt,
    start_attempt,
)
from assessment_engine.core.config import settings
from assessment_engine.core.entities import Attempt, Session, SessionModule, TestInfo
from assessment_engine.core.error_responses import ErrorMessages
from assessment_engine.core.exceptions import StateConflictError
from assessment_engine.core.module_scheduler import next_module
from assessment_engine.core.session_state import (
    effective_status,
    normalize_session_code,
)

from .models import (
    AssessmentSession,
    AssessmentTest,
    ModuleAttempt,
    SessionRegistration,
)

logger = logging.getLogger(__name__)

OPEN_SESSION_STATUSES = (SessionStatus.DRAFT, SessionStatus.ACTIVE)


class MaintenanceResult(TypedDict):
    """Counts reported by ``run_maintenance``."""

    sessions_checked: int
    sessions_updated: int
    attempts_checked: int
    attempts_finalized: int


# =============================================================================
# Row <-> entity mapping
# =============================================================================


def to_session_entity(row: AssessmentSession) -> Session:
    return Session(
        id=row.id,
        name=row.name,
        session_code=row.session_code,
        start_time=row.start_time,
        end_time=row.end_time,
        target_position=row.target_position or "",
        max_participants=row.max_participants,
        current_participants=row.current_participants or 0,
        status=SessionStatus(row.status),
        auto_expire=row.auto_expire,
        allow_late_entry=row.allow_late_entry,
        modules=[
            SessionModule(
                test_id=m.test_id,
                sequence=m.sequence,
                is_required=m.is_required,
                weight=m.weight,
            )
            for m in row.modules
        ],
    )


def to_test_info(row: AssessmentTest) -> TestInfo:
    return TestInfo(
        id=row.id,
        name=row.name,
        category=row.category or "",
        module_type=row.module_type or "",
        time_limit=row.time_limit,
        total_questions=row.total_questions,
        passing_score=row.passing_score,
    )


def to_attempt_entity(row: ModuleAttempt) -> Attempt:
    return Attempt(
        id=row.id,
        participant_id=row.participant_id,
        test_id=row.test_id,
        session_id=row.session_id,
        status=AttemptStatus(row.status),
        start_time=row.start_time,
        end_time=row.end_time,
        time_spent=row.time_spent or 0,
        answered_questions=row.answered_questions or 0,
        last_activity_at=row.last_activity_at,
        raw_score=row.raw_score,
    )


def _write_attempt(row: ModuleAttempt, attempt: Attempt) -> None:
    row.status = attempt.status
    row.start_time = attempt.start_time
    row.end_time = attempt.end_time
    row.time_spent = attempt.time_spent
    row.answered_questions = attempt.answered_questions
    row.last_activity_at = attempt.last_activity_at


# =============================================================================
# Queries
# =============================================================================


def get_session_row(
    db: DBSession, session_id: int, for_update: bool = False
) -> Optional[AssessmentSession]:
    query = db.query(AssessmentSession).filter(AssessmentSession.id == session_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_session_by_code(db: DBSession, code: str) -> Optional[AssessmentSession]:
    """Look a session up by join code, ignoring case and surrounding spaces."""
    normalized = normalize_session_code(code)
    return (
        db.query(AssessmentSession)
        .filter(func.upper(AssessmentSession.session_code) == normalized)
        .first()
    )


def get_registration(
    db: DBSession, session_id: int, participant_id: int, for_update: bool = False
) -> Optional[SessionRegistration]:
    query = db.query(SessionRegistration).filter(
        SessionRegistration.session_id == session_id,
        SessionRegistration.participant_id == participant_id,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def count_registrations(db: DBSession, session_id: int) -> int:
    return (
        db.query(func.count(SessionRegistration.id))
        .filter(SessionRegistration.session_id == session_id)
        .scalar()
        or 0
    )


def get_attempt_row(
    db: DBSession, attempt_id: int, for_update: bool = False
) -> Optional[ModuleAttempt]:
    query = db.query(ModuleAttempt).filter(ModuleAttempt.id == attempt_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_participant_attempts(
    db: DBSession, session_id: int, participant_id: int
) -> Dict[int, ModuleAttempt]:
    """A participant's attempts in a session, keyed by test id."""
    rows = (
        db.query(ModuleAttempt)
        .filter(
            ModuleAttempt.session_id == session_id,
            ModuleAttempt.participant_id == participant_id,
        )
        .all()
    )
    return {row.test_id: row for row in rows}


def get_session_attempts(db: DBSession, session_id: int) -> List[ModuleAttempt]:
    return (
        db.query(ModuleAttempt)
        .filter(ModuleAttempt.session_id == session_id)
        .order_by(ModuleAttempt.id)
        .all()
    )


def load_tests(db: DBSession, test_ids: Iterable[int]) -> Dict[int, TestInfo]:
    ids = list(set(test_ids))
    if not ids:
        return {}
    rows = db.query(AssessmentTest).filter(AssessmentTest.id.in_(ids)).all()
    return {row.id: to_test_info(row) for row in rows}


# =============================================================================
# Writes
# =============================================================================


def sync_session_status(
    db: DBSession, row: AssessmentSession, now: datetime
) -> SessionStatus:
    """
    Persist the session's effective status if it differs from the stored one.

    Returns:
        The effective status
    """
    status = effective_status(to_session_entity(row), now)
    if SessionStatus(row.status) != status:
        logger.info(
            f"Session {row.id} status {SessionStatus(row.status).value} -> {status.value}"
        )
        row.status = status
        db.flush()
    return status


def _record_admission(
    row: AssessmentSession, registration: SessionRegistration, now: datetime
) -> None:
    """Count a first admission against the session's capacity."""
    row.current_participants = (row.current_participants or 0) + 1
    registration.admitted_at = now
    registration.status = RosterStatus.ADMITTED
    logger.info(
        f"Participant {registration.participant_id} admitted to session {row.id} "
        f"({row.current_participants}/{row.max_participants or 'unlimited'})"
    )


def admit_participant(
    db: DBSession, row: AssessmentSession, participant_id: int, now: datetime
) -> Tuple[Decision, bool]:
    """
    Admit a participant into a session.

    ``row`` should have been loaded with ``for_update=True`` so the capacity
    check and the participant count update are atomic.

    Returns:
        (decision, first_admission)

    Raises:
        NotRegisteredError: Participant not on the roster
        StateConflictError: Session not enterable (closed, full, ...)
    """
    sync_session_status(db, row, now)
    registration = get_registration(db, row.id, participant_id, for_update=True)
    previously_admitted = (
        registration is not None and registration.admitted_at is not None
    )

    decision = require_entry(
        to_session_entity(row),
        registration is not None,
        now,
        participant_id=participant_id,
        previously_admitted=previously_admitted,
        roster_status=registration.status if registration else None,
        late_entry_cutoff_minutes=settings.LATE_ENTRY_CUTOFF_MINUTES,
    )

    first_admission = not previously_admitted
    if first_admission:
        _record_admission(row, registration, now)
    db.flush()
    return decision, first_admission


def start_module_attempt(
    db: DBSession,
    row: AssessmentSession,
    participant_id: int,
    test_id: int,
    now: datetime,
) -> Tuple[ModuleAttempt, AttemptUpdate]:
    """
    Start (or resume) a participant's attempt at one module of a session.

    Creates the attempt row on first use. The participant's open attempts are
    ticked first, so a module whose time has run out no longer blocks the
    next one. When ENFORCE_MODULE_ORDER is set,
    a module can only be started once every earlier module is finished.
    Entering a module also counts as admission to the session.

    Raises:
        NotRegisteredError: Participant not on the roster
        StateConflictError: Session not enterable, or module out of order
    """
    sync_session_status(db, row, now)
    session = to_session_entity(row)
    registration = get_registration(db, row.id, participant_id, for_update=True)
    attempts = get_participant_attempts(db, row.id, participant_id)
    # Close modules whose time ran out so the order check sees final statuses
    for open_row in attempts.values():
        if open_row.status == AttemptStatus.IN_PROGRESS:
            apply_attempt_event(db, open_row, AttemptEvent.TICK, now)
    attempt_row = attempts.get(test_id)

    # Unregistered participants fall through so admission reports them
    if (
        settings.ENFORCE_MODULE_ORDER
        and registration is not None
        and (attempt_row is None or attempt_row.status == AttemptStatus.NOT_STARTED)
    ):
        expected = next_module(
            session.modules,
            {tid: to_attempt_entity(a) for tid, a in attempts.items()},
        )
        if expected is not None and expected.test_id != test_id:
            raise StateConflictError(
                "out of order", ErrorMessages.module_out_of_order(expected.test_id)
            )

    test = load_tests(db, [test_id])[test_id]
    if attempt_row is None:
        attempt_row = ModuleAttempt(
            session_id=row.id,
            participant_id=participant_id,
            test_id=test_id,
            status=AttemptStatus.NOT_STARTED,
            time_spent=0,
            answered_questions=0,
        )
        db.add(attempt_row)

    previously_admitted = (
        registration is not None and registration.admitted_at is not None
    )
    was_not_started = AttemptStatus(attempt_row.status) == AttemptStatus.NOT_STARTED

    update = start_attempt(
        to_attempt_entity(attempt_row),
        session,
        test,
        registration is not None,
        now,
        previously_admitted=previously_admitted,
        roster_status=registration.status if registration else None,
        late_entry_cutoff_minutes=settings.LATE_ENTRY_CUTOFF_MINUTES,
    )

    if update.changed:
        _write_attempt(attempt_row, update.attempt)
    if was_not_started and update.changed and not previously_admitted:
        _record_admission(row, registration, now)

    db.flush()
    if update.finalized_by is not None:
        _mark_roster_completed(db, session, participant_id)
        db.flush()
    return attempt_row, update


def _mark_roster_completed(
    db: DBSession, session: Session, participant_id: int
) -> None:
    attempts = get_participant_attempts(db, session.id, participant_id)
    entities = {tid: to_attempt_entity(a) for tid, a in attempts.items()}
    if next_module(session.modules, entities) is not None:
        return
    registration = get_registration(db, session.id, participant_id)
    if registration is not None and registration.status != RosterStatus.COMPLETED:
        registration.status = RosterStatus.COMPLETED
        logger.info(
            f"Participant {participant_id} finished every module of session {session.id}"
        )


def apply_attempt_event(
    db: DBSession,
    attempt_row: ModuleAttempt,
    event: AttemptEvent,
    now: datetime,
    answered_count: Optional[int] = None,
) -> AttemptUpdate:
    """
    Apply an answer/finish/tick event to a stored attempt.

    ``attempt_row`` should be loaded with ``for_update=True``.
    """
    session_row = attempt_row.session
    session = to_session_entity(session_row)
    test = to_test_info(attempt_row.test)

    update = advance_attempt(
        to_attempt_entity(attempt_row),
        event,
        now,
        test=test,
        session=session,
        answered_count=answered_count,
    )
    if update.changed:
        _write_attempt(attempt_row, update.attempt)
        db.flush()
    if update.finalized_by is not None:
        _mark_roster_completed(db, session, attempt_row.participant_id)
        db.flush()
    return update


def run_maintenance(db: DBSession, now: datetime) -> MaintenanceResult:
    """
    Caller-driven sweep: write back effective session statuses and close
    attempts whose time has run out.

    Nothing schedules this automatically; run it from a cron job or call
    ``POST /maintenance/sweep``.
    """
    sessions = (
        db.query(AssessmentSession)
        .filter(AssessmentSession.status.in_(OPEN_SESSION_STATUSES))
        .all()
    )
    sessions_updated = 0
    for row in sessions:
        before = SessionStatus(row.status)
        if sync_session_status(db, row, now) != before:
            sessions_updated += 1

    open_attempts = (
        db.query(ModuleAttempt)
        .filter(ModuleAttempt.status == AttemptStatus.IN_PROGRESS)
        .with_for_update()
        .all()
    )
    attempts_finalized = 0
    for attempt_row in open_attempts:
        update = apply_attempt_event(db, attempt_row, AttemptEvent.TICK, now)
        if update.finalized_by is not None:
            attempts_finalized += 1

    db.flush()
    result = MaintenanceResult(
        sessions_checked=len(sessions),
        sessions_updated=sessions_updated,
        attempts_checked=len(open_attempts),
        attempts_finalized=attempts_finalized,
    )
    logger.info(f"Maintenance sweep at {now.isoformat()}: {result}")
    return result
