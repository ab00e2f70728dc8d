"""
Plain records consumed and produced by the core engine.

These are storage-agnostic: the persistence layer converts ORM rows into
these dataclasses before calling any core function, so no SQLAlchemy type
ever reaches the state machines or the statistics code.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from libs.domain_types import AttemptStatus, SessionStatus


@dataclass
class SessionModule:
    """A test bound to a session at a sequence position."""

    test_id: int
    sequence: int
    is_required: bool = True
    weight: float = 1.0


@dataclass
class Session:
    """A scheduled, time-boxed assessment event."""

    id: Optional[int]
    name: str
    session_code: str
    start_time: datetime
    end_time: datetime
    target_position: str = ""
    max_participants: Optional[int] = None
    current_participants: int = 0
    status: SessionStatus = SessionStatus.DRAFT
    auto_expire: bool = True
    allow_late_entry: bool = False
    modules: List[SessionModule] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return (
            self.max_participants is not None
            and self.current_participants >= self.max_participants
        )


@dataclass
class TestInfo:
    """Read-only view of a test module definition."""

    __test__ = False  # not a pytest test class

    id: int
    name: str
    category: str
    module_type: str
    time_limit: int  # minutes
    total_questions: int
    passing_score: Optional[float] = None


@dataclass
class Attempt:
    """One participant's progress record against one test within one session."""

    id: Optional[int]
    participant_id: int
    test_id: int
    session_id: int
    status: AttemptStatus = AttemptStatus.NOT_STARTED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    time_spent: int = 0  # whole seconds
    answered_questions: int = 0
    last_activity_at: Optional[datetime] = None
    raw_score: Optional[float] = None  # supplied by the external answer scorer


@dataclass
class ScoreRecord:
    """Derived per-attempt score; never persisted by the engine."""

    attempt_id: Optional[int]
    participant_id: int
    test_id: int
    status: AttemptStatus
    scaled_score: Optional[float]
    percentile: Optional[float]
    grade: Optional[str]
    passed: Optional[bool]
