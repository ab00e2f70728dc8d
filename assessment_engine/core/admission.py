"""
Admission controller.

Decides whether a participant may enter (or resume) a session right now.
Evaluated on every entry request and never cached: sessions transition
purely by time, and the result is only valid inside the transaction that
reads ``current_participants``. The persistence layer re-runs ``can_enter``
under a row lock before incrementing the participant count.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from libs.domain_types import RosterStatus, SessionStatus

from assessment_engine.core.datetime_utils import ensure_timezone_aware
from assessment_engine.core.entities import Session
from assessment_engine.core.exceptions import NotRegisteredError, StateConflictError
from assessment_engine.core.session_state import effective_status

logger = logging.getLogger(__name__)

REASON_OK = "ok"
REASON_NOT_YET_OPEN = "not yet open"
REASON_CLOSED = "closed"
REASON_NOT_REGISTERED = "not registered"
REASON_ALREADY_COMPLETED = "already completed"
REASON_NO_SHOW = "no show"
REASON_FULL = "full"
REASON_LATE_ENTRY_CLOSED = "late entry closed"


@dataclass
class Decision:
    """Outcome of an admission check."""

    allow: bool
    reason: str

    def to_dict(self) -> dict:
        return {"allow": self.allow, "reason": self.reason}


def can_enter(
    session: Session,
    registered: bool,
    now: datetime,
    *,
    previously_admitted: bool = False,
    roster_status: Optional[RosterStatus] = None,
    late_entry_cutoff_minutes: Optional[int] = None,
) -> Decision:
    """
    Decide whether a participant may enter the session at ``now``.

    Checks, in order:
    1. Effective status must be active ("not yet open" for draft,
       "closed" for expired/completed/cancelled).
    2. The participant must be on the roster ("not registered").
    3. Roster status completed/no_show blocks entry.
    4. First entry into a full session is refused ("full"); re-entry to
       resume is never capacity-checked.
    5. First entry after the late-entry cutoff requires allow_late_entry.

    Args:
        session: Session record
        registered: Whether the participant is registered for this session
        now: Current time
        previously_admitted: True if the participant was already admitted
            (and is therefore already counted in current_participants)
        roster_status: Optional roster status of the participant
        late_entry_cutoff_minutes: Minutes after start_time after which a
            first entry is "late"; None disables the check

    Returns:
        Decision with allow flag and reason
    """
    status = effective_status(session, now)
    if status == SessionStatus.DRAFT:
        return Decision(False, REASON_NOT_YET_OPEN)
    if status != SessionStatus.ACTIVE:
        return Decision(False, REASON_CLOSED)

    if not registered:
        return Decision(False, REASON_NOT_REGISTERED)

    if roster_status == RosterStatus.COMPLETED:
        return Decision(False, REASON_ALREADY_COMPLETED)
    if roster_status == RosterStatus.NO_SHOW:
        return Decision(False, REASON_NO_SHOW)

    if previously_admitted:
        return Decision(True, REASON_OK)

    if session.is_full:
        return Decision(False, REASON_FULL)

    if late_entry_cutoff_minutes is not None and not session.allow_late_entry:
        cutoff = ensure_timezone_aware(session.start_time) + timedelta(
            minutes=late_entry_cutoff_minutes
        )
        if ensure_timezone_aware(now) > cutoff:
            return Decision(False, REASON_LATE_ENTRY_CLOSED)

    return Decision(True, REASON_OK)


def require_entry(
    session: Session,
    registered: bool,
    now: datetime,
    *,
    participant_id: object = None,
    previously_admitted: bool = False,
    roster_status: Optional[RosterStatus] = None,
    late_entry_cutoff_minutes: Optional[int] = None,
) -> Decision:
    """
    Like ``can_enter`` but raise a typed error when entry is refused.

    Raises:
        NotRegisteredError: If the participant is not on the roster
        StateConflictError: For any other refusal (closed, full, ...)
    """
    decision = can_enter(
        session,
        registered,
        now,
        previously_admitted=previously_admitted,
        roster_status=roster_status,
        late_entry_cutoff_minutes=late_entry_cutoff_minutes,
    )
    if decision.allow:
        return decision

    logger.info(
        f"Entry refused for participant {participant_id} "
        f"in session {session.id}: {decision.reason}"
    )
    if decision.reason == REASON_NOT_REGISTERED:
        raise NotRegisteredError(participant_id=participant_id, session_id=session.id)
    raise StateConflictError(decision.reason, f"Entry refused: {decision.reason}")
