"""
Typed, recoverable errors raised by the session and attempt engine.

No condition in the engine is fatal to the process. Each error carries
enough structure for the caller (HTTP handler, CLI, background sweep) to
decide on user messaging:

- ValidationError: bad configuration, field-scoped and batched
- StateConflictError: operation not allowed in the current state
  (closed/full session, attempt not started, invalid status transition)
- NotRegisteredError: participant absent from the session roster

Re-applying an event to an already terminal attempt is NOT an error; the
tracker reports it through ``AttemptUpdate.already_finalized``.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass
class FieldError:
    """A single field-scoped validation violation."""

    field: str
    message: str
    code: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "code": self.code}


class AssessmentEngineError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AssessmentEngineError):
    """Raised when configuration fails validation.

    Attributes:
        errors: Every violation found, so callers can surface all of them at once.
    """

    def __init__(self, errors: List[FieldError], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(
            message or f"Validation failed with {len(self.errors)} error(s)"
        )


class StateConflictError(AssessmentEngineError):
    """Raised when an operation conflicts with the current session/attempt state.

    Attributes:
        reason: Short machine-readable reason (e.g. "closed", "full").
    """

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"State conflict: {reason}")


class NotRegisteredError(AssessmentEngineError):
    """Raised when a participant is not on the session roster."""

    reason = "not registered"

    def __init__(self, participant_id: object = None, session_id: object = None):
        self.participant_id = participant_id
        self.session_id = session_id
        super().__init__(
            f"Participant {participant_id} is not registered for session {session_id}"
        )
