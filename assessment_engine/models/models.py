"""
Database models for the assessment session engine.

Rows here are converted into ``assessment_engine.core.entities`` records by
the repository before any engine logic runs.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    Enum,
    Float,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from libs.domain_types import AttemptStatus, RosterStatus, SessionStatus

from .base import Base
from .types import UTCDateTime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AssessmentSession(Base):
    """A scheduled, time-boxed assessment event participants join by code."""

    __tablename__ = "assessment_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    session_code = Column(String(50), unique=True, nullable=False, index=True)
    target_position = Column(String(255), nullable=False, default="")
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    max_participants = Column(Integer, nullable=True)  # None = unlimited
    current_participants = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(SessionStatus), default=SessionStatus.DRAFT, nullable=False, index=True
    )
    auto_expire = Column(Boolean, nullable=False, default=True)
    allow_late_entry = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime(), default=_utc_now, nullable=False)
    updated_at = Column(UTCDateTime(), default=_utc_now, onupdate=_utc_now)

    # Relationships
    modules = relationship(
        "SessionTestModule",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionTestModule.sequence",
    )
    registrations = relationship(
        "SessionRegistration", back_populates="session", cascade="all, delete-orphan"
    )
    attempts = relationship(
        "ModuleAttempt", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_session_window"),
        CheckConstraint("current_participants >= 0", name="ck_session_participants"),
        Index("ix_assessment_sessions_status_end", "status", "end_time"),
    )


class AssessmentTest(Base):
    """Test definition a session module points at (read-only to the engine)."""

    __tablename__ = "tests"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="")
    module_type = Column(String(100), nullable=False, default="")
    time_limit = Column(Integer, nullable=False)  # minutes
    total_questions = Column(Integer, nullable=False)
    passing_score = Column(Float, nullable=True)  # None = DEFAULT_PASSING_SCORE

    session_modules = relationship("SessionTestModule", back_populates="test")


class SessionTestModule(Base):
    """Binding of a test to a session at a sequence position."""

    __tablename__ = "session_modules"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    test_id = Column(Integer, ForeignKey("tests.id"), nullable=False)
    sequence = Column(Integer, nullable=False)  # 1-based
    is_required = Column(Boolean, nullable=False, default=True)
    weight = Column(Float, nullable=False, default=1.0)

    session = relationship("AssessmentSession", back_populates="modules")
    test = relationship("AssessmentTest", back_populates="session_modules")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_session_module_sequence"),
        UniqueConstraint("session_id", "test_id", name="uq_session_module_test"),
    )


class SessionRegistration(Base):
    """Roster entry: a participant registered for a session."""

    __tablename__ = "session_registrations"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(Integer, nullable=False, index=True)
    status = Column(
        Enum(RosterStatus), default=RosterStatus.REGISTERED, nullable=False
    )
    registered_at = Column(UTCDateTime(), default=_utc_now, nullable=False)
    admitted_at = Column(UTCDateTime(), nullable=True)  # Set on first admission

    session = relationship("AssessmentSession", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint(
            "session_id", "participant_id", name="uq_session_registration"
        ),
    )


class ModuleAttempt(Base):
    """One participant's attempt at one test within one session."""

    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer,
        ForeignKey("assessment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id = Column(Integer, nullable=False, index=True)
    test_id = Column(Integer, ForeignKey("tests.id"), nullable=False)
    status = Column(
        Enum(AttemptStatus), default=AttemptStatus.NOT_STARTED, nullable=False
    )
    start_time = Column(UTCDateTime(), nullable=True)
    end_time = Column(UTCDateTime(), nullable=True)  # Set when terminal
    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    answered_questions = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(UTCDateTime(), nullable=True)
    raw_score = Column(Float, nullable=True)  # Written by the answer scorer
    created_at = Column(UTCDateTime(), default=_utc_now, nullable=False)

    session = relationship("AssessmentSession", back_populates="attempts")
    test = relationship("AssessmentTest")

    __table_args__ = (
        UniqueConstraint(
            "session_id", "participant_id", "test_id", name="uq_attempt_per_module"
        ),
        CheckConstraint("time_spent >= 0", name="ck_attempt_time_spent"),
        CheckConstraint("answered_questions >= 0", name="ck_attempt_answered"),
        Index("ix_attempts_session_status", "session_id", "status"),
    )
