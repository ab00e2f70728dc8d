"""
Session state controller.

Derives a session's effective status from its stored status plus the
current time, and enforces the allowed status transitions:

    draft  -> active -> {expired, completed}
    draft  -> cancelled
    active -> {expired, completed, cancelled}

``expired``, ``completed`` and ``cancelled`` are terminal.

The stored status is treated as coarse intent set by administrators
(draft/completed/cancelled). Every time-sensitive decision (admission,
attempt expiry) must go through ``effective_status`` instead of branching on
the stored column. The function is pure and safe to call on every read;
persisting the derived value is the caller's responsibility.
"""
import logging
import math
import re
import secrets
import string
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from libs.domain_types import SessionStatus

from assessment_engine.core.config import settings
from assessment_engine.core.datetime_utils import ensure_timezone_aware
from assessment_engine.core.entities import Session
from assessment_engine.core.exceptions import FieldError, StateConflictError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset(
    {SessionStatus.EXPIRED, SessionStatus.COMPLETED, SessionStatus.CANCELLED}
)

# Statuses an administrator sets by hand; time never overrides them
MANUAL_TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED}
)

ALLOWED_TRANSITIONS = {
    SessionStatus.DRAFT: frozenset({SessionStatus.ACTIVE, SessionStatus.CANCELLED}),
    SessionStatus.ACTIVE: frozenset(
        {SessionStatus.EXPIRED, SessionStatus.COMPLETED, SessionStatus.CANCELLED}
    ),
    SessionStatus.EXPIRED: frozenset(),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
}

SESSION_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SESSION_CODE_MIN_LENGTH = 3
SESSION_CODE_MAX_LENGTH = 50
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def effective_status(session: Session, now: datetime) -> SessionStatus:
    """
    Compute the effective status of a session at ``now``.

    Rules, evaluated in order:
    1. Stored ``completed``/``cancelled`` are terminal and returned as-is.
    2. ``now > end_time`` with ``auto_expire`` enabled -> ``expired``.
    3. Stored ``draft`` inside ``[start_time, end_time]`` -> ``active``.
    4. Otherwise the stored status.

    Never raises. A malformed window (``end_time <= start_time``) simply
    reads as expired once ``now`` passes ``end_time``.

    Args:
        session: Session record
        now: Current time (timezone-aware; naive values are treated as UTC)

    Returns:
        The effective SessionStatus
    """
    stored = SessionStatus(session.status)
    if stored in MANUAL_TERMINAL_STATUSES:
        return stored

    now = ensure_timezone_aware(now)
    start_time = ensure_timezone_aware(session.start_time)
    end_time = ensure_timezone_aware(session.end_time)

    if now > end_time and session.auto_expire:
        return SessionStatus.EXPIRED

    if stored == SessionStatus.DRAFT and start_time <= now <= end_time:
        return SessionStatus.ACTIVE

    return stored


def is_terminal(status: SessionStatus) -> bool:
    """Return True if no further transitions are allowed from ``status``."""
    return SessionStatus(status) in TERMINAL_STATUSES


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return True if ``current -> target`` is an allowed transition."""
    return SessionStatus(target) in ALLOWED_TRANSITIONS[SessionStatus(current)]


def transition(session: Session, target: SessionStatus, now: datetime) -> Session:
    """
    Apply an administrative status change.

    The move is validated against the session's *effective* status, so a
    draft whose window has opened can be completed, and a session that has
    already expired by time cannot be cancelled.

    Args:
        session: Session record
        target: Desired status
        now: Current time

    Returns:
        A copy of the session with the new stored status

    Raises:
        StateConflictError: If the transition is not allowed
    """
    current = effective_status(session, now)
    target = SessionStatus(target)
    if current == target:
        return replace(session, status=target)
    if not can_transition(current, target):
        raise StateConflictError(
            "invalid transition",
            f"Cannot move session from {current.value} to {target.value}",
        )
    logger.info(
        f"Session {session.id} transition {current.value} -> {target.value}"
    )
    return replace(session, status=target)


def session_progress(session: Session, now: datetime) -> float:
    """
    Percentage of the session window that has elapsed.

    Returns:
        0 before start, 100 at or after end, otherwise elapsed share (2dp)
    """
    now = ensure_timezone_aware(now)
    start_time = ensure_timezone_aware(session.start_time)
    end_time = ensure_timezone_aware(session.end_time)

    if now <= start_time:
        return 0.0
    if now >= end_time:
        return 100.0

    total = (end_time - start_time).total_seconds()
    elapsed = (now - start_time).total_seconds()
    return round(elapsed / total * 100, 2)


def time_remaining_seconds(session: Session, now: datetime) -> int:
    """Whole seconds until the session window closes (never negative)."""
    remaining = (
        ensure_timezone_aware(session.end_time) - ensure_timezone_aware(now)
    ).total_seconds()
    return max(0, int(remaining))


def session_duration_hours(start_time: datetime, end_time: datetime) -> int:
    """Session length in hours, rounded up."""
    seconds = (
        ensure_timezone_aware(end_time) - ensure_timezone_aware(start_time)
    ).total_seconds()
    return math.ceil(seconds / 3600)


def validate_session_schedule(
    start_time: datetime,
    end_time: datetime,
    now: Optional[datetime] = None,
    max_participants: Optional[int] = None,
    session_code: Optional[str] = None,
) -> List[FieldError]:
    """
    Validate session creation parameters.

    Checks performed:
    - end_time after start_time
    - duration within SESSION_MIN_DURATION_MINUTES..SESSION_MAX_DURATION_HOURS
    - start_time in the future (only when ``now`` is given)
    - max_participants within 1..MAX_PARTICIPANTS_LIMIT
    - session_code length and character set

    Returns:
        List of field-scoped errors (empty when valid)
    """
    errors: List[FieldError] = []
    start_time = ensure_timezone_aware(start_time)
    end_time = ensure_timezone_aware(end_time)

    if end_time <= start_time:
        errors.append(
            FieldError("end_time", "End time must be after start time.", "END_BEFORE_START")
        )
    else:
        duration_minutes = (end_time - start_time).total_seconds() / 60
        if duration_minutes < settings.SESSION_MIN_DURATION_MINUTES:
            errors.append(
                FieldError(
                    "end_time",
                    "Session duration must be at least "
                    f"{settings.SESSION_MIN_DURATION_MINUTES} minutes.",
                    "DURATION_TOO_SHORT",
                )
            )
        if duration_minutes > settings.SESSION_MAX_DURATION_HOURS * 60:
            errors.append(
                FieldError(
                    "end_time",
                    "Session duration cannot exceed "
                    f"{settings.SESSION_MAX_DURATION_HOURS} hours.",
                    "DURATION_TOO_LONG",
                )
            )

    if now is not None and start_time <= ensure_timezone_aware(now):
        errors.append(
            FieldError("start_time", "Start time must be in the future.", "START_IN_PAST")
        )

    if max_participants is not None and not (
        1 <= max_participants <= settings.MAX_PARTICIPANTS_LIMIT
    ):
        errors.append(
            FieldError(
                "max_participants",
                f"Max participants must be between 1 and {settings.MAX_PARTICIPANTS_LIMIT}.",
                "MAX_PARTICIPANTS_OUT_OF_RANGE",
            )
        )

    if session_code is not None:
        if not (
            SESSION_CODE_MIN_LENGTH <= len(session_code) <= SESSION_CODE_MAX_LENGTH
        ):
            errors.append(
                FieldError(
                    "session_code",
                    f"Session code must be {SESSION_CODE_MIN_LENGTH}-"
                    f"{SESSION_CODE_MAX_LENGTH} characters.",
                    "SESSION_CODE_LENGTH",
                )
            )
        elif not SESSION_CODE_PATTERN.match(session_code):
            errors.append(
                FieldError(
                    "session_code",
                    "Session code can only contain letters, numbers, hyphens, "
                    "and underscores.",
                    "SESSION_CODE_CHARSET",
                )
            )

    return errors


def generate_session_code(length: Optional[int] = None) -> str:
    """Generate a random upper-case alphanumeric join code."""
    size = length or settings.SESSION_CODE_LENGTH
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(size))


def normalize_session_code(code: str) -> str:
    """Canonical form of a join code for lookups and display."""
    return code.strip().upper()
