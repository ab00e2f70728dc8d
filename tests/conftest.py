"""
Pytest configuration and shared fixtures for testing.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from libs.domain_types import RosterStatus, SessionStatus

from assessment_engine.core.datetime_utils import FixedClock, get_clock
from assessment_engine.core.entities import Session, SessionModule, TestInfo
from assessment_engine.main import app
from assessment_engine.models import (
    AssessmentSession,
    AssessmentTest,
    Base,
    SessionRegistration,
    SessionTestModule,
    get_db,
)

# Use SQLite for tests. The path is relative to this file so the .db lands
# inside tests/ regardless of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Session window opens at T0 and closes two hours later
T0 = datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    """A manually driven clock starting at the session's opening time."""
    return FixedClock(T0)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session, clock):
    """
    Create a test client with database and clock dependency overrides.

    Each request gets its own session on the same test.db file where
    db_session creates data.
    """

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Plain entity fixtures (no database)
# =============================================================================


@pytest.fixture
def logic_test():
    return TestInfo(
        id=1,
        name="Logical Reasoning",
        category="reasoning",
        module_type="multiple_choice",
        time_limit=30,
        total_questions=20,
    )


@pytest.fixture
def verbal_test():
    return TestInfo(
        id=2,
        name="Verbal Comprehension",
        category="verbal",
        module_type="multiple_choice",
        time_limit=20,
        total_questions=10,
        passing_score=70.0,
    )


@pytest.fixture
def session_entity():
    """A two-hour draft session with two ordered modules."""
    return Session(
        id=1,
        name="Graduate Intake",
        session_code="INTAKE01",
        start_time=T0,
        end_time=T0 + timedelta(hours=2),
        target_position="Analyst",
        max_participants=10,
        current_participants=0,
        status=SessionStatus.DRAFT,
        modules=[
            SessionModule(test_id=2, sequence=2),
            SessionModule(test_id=1, sequence=1),
        ],
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def test_definitions(db_session):
    """
    Create two test definitions in the database.
    """
    tests = [
        AssessmentTest(
            name="Logical Reasoning",
            category="reasoning",
            module_type="multiple_choice",
            time_limit=30,
            total_questions=20,
        ),
        AssessmentTest(
            name="Verbal Comprehension",
            category="verbal",
            module_type="multiple_choice",
            time_limit=20,
            total_questions=10,
            passing_score=70.0,
        ),
    ]
    for test in tests:
        db_session.add(test)
    db_session.commit()
    for test in tests:
        db_session.refresh(test)
    return tests


@pytest.fixture
def session_row(db_session, test_definitions):
    """
    Create a draft session (opens at T0, closes at T0+2h) with two modules
    and a capacity of two participants.
    """
    logic, verbal = test_definitions
    row = AssessmentSession(
        name="Graduate Intake",
        session_code="INTAKE01",
        target_position="Analyst",
        start_time=T0,
        end_time=T0 + timedelta(hours=2),
        max_participants=2,
        current_participants=0,
        status=SessionStatus.DRAFT,
        auto_expire=True,
        allow_late_entry=False,
    )
    row.modules = [
        SessionTestModule(test_id=logic.id, sequence=1, weight=2.0),
        SessionTestModule(test_id=verbal.id, sequence=2, weight=1.0),
    ]
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def registered_participants(db_session, session_row):
    """
    Register participants 101, 102 and 103 for the session.
    """
    ids = [101, 102, 103]
    for participant_id in ids:
        db_session.add(
            SessionRegistration(
                session_id=session_row.id,
                participant_id=participant_id,
                status=RosterStatus.REGISTERED,
                registered_at=T0 - timedelta(days=1),
            )
        )
    db_session.commit()
    return ids
