"""
Models package for the assessment session engine.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    AssessmentSession,
    AssessmentTest,
    SessionTestModule,
    SessionRegistration,
    ModuleAttempt,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "AssessmentSession",
    "AssessmentTest",
    "SessionTestModule",
    "SessionRegistration",
    "ModuleAttempt",
]
