"""
Attempt progress tracker.

Per (participant, test) state machine layered under the parent session's
own time window:

    not_started -> in_progress            first entry, admission allowed
    in_progress -> in_progress            answer submitted
    in_progress -> completed              explicit finish within the time limit
    in_progress -> auto_completed         time ran out with answers > 0
    in_progress -> expired                time ran out with no answers

completed, auto_completed and expired are terminal. Partial credit is
computed for auto_completed attempts but never for expired ones.

Time rules are evaluated before any event is applied. The attempt is cut
off at the earlier of:
- the test deadline, ``start_time + time_limit``
- the session cut-off: ``end_time`` once the session is effectively
  expired, or ``now`` once it has been cancelled/completed

When the test deadline is not later than the session cut-off the test rule
wins; the module policy is more specific than the session policy.

Updates to a terminal attempt are reported as ``already_finalized`` and
leave the record untouched, so retried client requests are safe to repeat.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from libs.domain_types import AttemptEvent, AttemptStatus, RosterStatus, SessionStatus

from assessment_engine.core.admission import require_entry
from assessment_engine.core.datetime_utils import (
    ensure_timezone_aware,
    whole_seconds_between,
)
from assessment_engine.core.entities import Attempt, Session, TestInfo
from assessment_engine.core.exceptions import (
    FieldError,
    StateConflictError,
    ValidationError,
)
from assessment_engine.core.logging_config import attempt_log_fields
from assessment_engine.core.session_state import effective_status

logger = logging.getLogger(__name__)

TERMINAL_ATTEMPT_STATUSES = frozenset(
    {AttemptStatus.COMPLETED, AttemptStatus.AUTO_COMPLETED, AttemptStatus.EXPIRED}
)

FINALIZED_BY_FINISH = "finish"
FINALIZED_BY_TIME_LIMIT = "time_limit"
FINALIZED_BY_SESSION = "session_closed"


@dataclass
class AttemptUpdate:
    """Result of applying an event to an attempt.

    Attributes:
        attempt: The attempt after the event (the input itself when unchanged)
        changed: Whether any field was modified
        already_finalized: The attempt was terminal before the event arrived
        finalized_by: What closed the attempt during this update, if anything
    """

    attempt: Attempt
    changed: bool
    already_finalized: bool = False
    finalized_by: Optional[str] = None


def is_terminal(status: AttemptStatus) -> bool:
    """Return True for completed, auto_completed and expired."""
    return AttemptStatus(status) in TERMINAL_ATTEMPT_STATUSES


def _has_time_limit(test: TestInfo) -> bool:
    return test.time_limit is not None and test.time_limit > 0


def time_limit_seconds(test: TestInfo) -> Optional[int]:
    """Full time allowance for a test in seconds; None when unlimited."""
    if not _has_time_limit(test):
        return None
    return test.time_limit * 60


def expected_completion_at(attempt: Attempt, test: TestInfo) -> Optional[datetime]:
    """Deadline imposed by the test's own time limit (None if not started or unlimited)."""
    if attempt.start_time is None or not _has_time_limit(test):
        return None
    return ensure_timezone_aware(attempt.start_time) + timedelta(minutes=test.time_limit)


def time_remaining_seconds(attempt: Attempt, test: TestInfo, now: datetime) -> Optional[int]:
    """
    Seconds left before the test deadline.

    Returns:
        None for unlimited tests, the full limit for not-started attempts,
        0 for terminal attempts, otherwise the remaining whole seconds.
    """
    if not _has_time_limit(test):
        return None
    if attempt.status == AttemptStatus.NOT_STARTED:
        return time_limit_seconds(test)
    if is_terminal(attempt.status):
        return 0
    deadline = expected_completion_at(attempt, test)
    return whole_seconds_between(now, deadline)


def is_time_expired(attempt: Attempt, test: TestInfo, now: datetime) -> bool:
    """True once the test deadline has been reached."""
    deadline = expected_completion_at(attempt, test)
    if deadline is None:
        return False
    return ensure_timezone_aware(now) >= deadline


def progress_percentage(attempt: Attempt, test: TestInfo) -> float:
    """Share of the test's questions answered, 0-100 (2dp)."""
    if test.total_questions <= 0:
        return 0.0
    return round(attempt.answered_questions / test.total_questions * 100, 2)


def _elapsed_seconds(attempt: Attempt, test: TestInfo, until: datetime) -> int:
    seconds = whole_seconds_between(attempt.start_time, until)
    if _has_time_limit(test):
        seconds = min(seconds, test.time_limit * 60)
    return seconds


def _session_cutoff(session: Optional[Session], now: datetime) -> Optional[datetime]:
    """Moment the parent session stopped accepting work, if it has."""
    if session is None:
        return None
    status = effective_status(session, now)
    if status == SessionStatus.EXPIRED:
        return min(ensure_timezone_aware(session.end_time), now)
    if status in (SessionStatus.CANCELLED, SessionStatus.COMPLETED):
        return now
    return None


def _finalize_by_time(attempt: Attempt, test: TestInfo, at: datetime) -> Attempt:
    status = (
        AttemptStatus.AUTO_COMPLETED
        if attempt.answered_questions > 0
        else AttemptStatus.EXPIRED
    )
    return replace(
        attempt,
        status=status,
        end_time=at,
        time_spent=_elapsed_seconds(attempt, test, at),
    )


def _apply_time_rules(
    attempt: Attempt,
    test: TestInfo,
    session: Optional[Session],
    now: datetime,
    *,
    inclusive_deadline: bool,
) -> Optional[AttemptUpdate]:
    """Close an in-progress attempt whose time is up; None if it may continue."""
    deadline = expected_completion_at(attempt, test)
    if deadline is None:
        test_due = False
    elif inclusive_deadline:
        test_due = now >= deadline
    else:
        test_due = now > deadline

    cutoff = _session_cutoff(session, now)

    if test_due and (cutoff is None or deadline <= cutoff):
        finalized = _finalize_by_time(attempt, test, deadline)
        logger.info(
            f"Attempt {attempt.id} reached time limit -> {finalized.status.value}",
            extra=attempt_log_fields(
                finalized, finalized_by=FINALIZED_BY_TIME_LIMIT
            ),
        )
        return AttemptUpdate(finalized, True, finalized_by=FINALIZED_BY_TIME_LIMIT)

    if cutoff is not None:
        finalized = _finalize_by_time(attempt, test, cutoff)
        logger.info(
            f"Attempt {attempt.id} closed by session {attempt.session_id} "
            f"-> {finalized.status.value}",
            extra=attempt_log_fields(finalized, finalized_by=FINALIZED_BY_SESSION),
        )
        return AttemptUpdate(finalized, True, finalized_by=FINALIZED_BY_SESSION)

    return None


def _resolve_answered(
    attempt: Attempt, test: TestInfo, answered_count: Optional[int]
) -> int:
    total = max(0, test.total_questions)
    if answered_count is None:
        return min(attempt.answered_questions + 1, total)

    if answered_count < 0 or answered_count > total:
        raise ValidationError(
            [
                FieldError(
                    "answered_questions",
                    f"Answered questions must be between 0 and {total}.",
                    "INVALID_ANSWERED_QUESTIONS",
                )
            ]
        )
    # Never decrease: a stale retried request must not roll progress back
    return max(attempt.answered_questions, answered_count)


def _check_test_matches(attempt: Attempt, test: TestInfo) -> None:
    if attempt.test_id != test.id:
        raise ValueError(
            f"Attempt {attempt.id} belongs to test {attempt.test_id}, not {test.id}"
        )


def start_attempt(
    attempt: Attempt,
    session: Session,
    test: TestInfo,
    registered: bool,
    now: datetime,
    *,
    previously_admitted: bool = False,
    roster_status: Optional[RosterStatus] = None,
    late_entry_cutoff_minutes: Optional[int] = None,
) -> AttemptUpdate:
    """
    Enter a module: ``not_started -> in_progress``.

    Admission is re-evaluated for the parent session; entry refused raises
    the corresponding typed error. Starting an attempt that is already in
    progress just re-applies the time rules; starting a terminal attempt is
    reported as already finalized.

    Raises:
        NotRegisteredError: Participant not on the roster
        StateConflictError: Session closed, full, or otherwise not enterable
    """
    _check_test_matches(attempt, test)
    now = ensure_timezone_aware(now)

    if is_terminal(attempt.status):
        return AttemptUpdate(attempt, False, already_finalized=True)

    if attempt.status == AttemptStatus.IN_PROGRESS:
        closed = _apply_time_rules(
            attempt, test, session, now, inclusive_deadline=True
        )
        return closed or AttemptUpdate(attempt, False)

    require_entry(
        session,
        registered,
        now,
        participant_id=attempt.participant_id,
        previously_admitted=previously_admitted,
        roster_status=roster_status,
        late_entry_cutoff_minutes=late_entry_cutoff_minutes,
    )

    started = replace(
        attempt,
        status=AttemptStatus.IN_PROGRESS,
        start_time=now,
        end_time=None,
        time_spent=0,
        answered_questions=0,
        last_activity_at=now,
    )
    logger.info(
        f"Attempt started for participant {attempt.participant_id} "
        f"on test {test.id} in session {attempt.session_id}",
        extra=attempt_log_fields(started, event="start"),
    )
    return AttemptUpdate(started, True)


def advance_attempt(
    attempt: Attempt,
    event: AttemptEvent,
    now: datetime,
    *,
    test: TestInfo,
    session: Optional[Session] = None,
    answered_count: Optional[int] = None,
) -> AttemptUpdate:
    """
    Apply an event to an attempt.

    Args:
        attempt: Current attempt record
        event: answer, finish or tick
        now: Current time
        test: Test definition (time limit, question count)
        session: Parent session; when given, its closing also closes the attempt
        answered_count: For ``answer``, the absolute answered count reported
            by the client. Omit to count one more answer.

    Returns:
        AttemptUpdate describing the new state

    Raises:
        StateConflictError: answer/finish on an attempt that was never started
        ValidationError: answered_count outside 0..total_questions
    """
    _check_test_matches(attempt, test)
    event = AttemptEvent(event)
    now = ensure_timezone_aware(now)

    if is_terminal(attempt.status):
        logger.debug(f"Attempt {attempt.id} already finalized; {event.value} ignored")
        return AttemptUpdate(attempt, False, already_finalized=True)

    if attempt.status == AttemptStatus.NOT_STARTED:
        if event == AttemptEvent.TICK:
            return AttemptUpdate(attempt, False)
        raise StateConflictError(
            "not started", f"Attempt {attempt.id} has not been started"
        )

    closed = _apply_time_rules(
        attempt,
        test,
        session,
        now,
        inclusive_deadline=event != AttemptEvent.FINISH,
    )
    if closed is not None:
        return closed

    if event == AttemptEvent.TICK:
        return AttemptUpdate(attempt, False)

    if event == AttemptEvent.ANSWER:
        answered = _resolve_answered(attempt, test, answered_count)
        updated = replace(
            attempt,
            answered_questions=answered,
            time_spent=_elapsed_seconds(attempt, test, now),
            last_activity_at=now,
        )
        return AttemptUpdate(updated, True)

    completed = replace(
        attempt,
        status=AttemptStatus.COMPLETED,
        end_time=now,
        time_spent=_elapsed_seconds(attempt, test, now),
        last_activity_at=now,
    )
    logger.info(f"Attempt {attempt.id} completed by participant")
    return AttemptUpdate(completed, True, finalized_by=FINALIZED_BY_FINISH)
