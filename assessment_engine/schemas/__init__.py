"""
Pydantic schemas for request/response validation.
"""
from .sessions import (
    FieldErrorSchema,
    ModuleInput,
    ModuleValidationRequest,
    ModuleValidationResponse,
    SessionModuleResponse,
    SessionResponse,
    AdmissionResponse,
    ModuleProgressResponse,
    ParticipantProgressResponse,
)
from .attempts import (
    AttemptResponse,
    AttemptEventRequest,
    AttemptUpdateResponse,
)
from .reports import (
    DistributionSummary,
    ModuleSummaryResponse,
    SessionSummaryResponse,
    ScoreRecordResponse,
    SessionScoresResponse,
    MaintenanceResponse,
)

__all__ = [
    "FieldErrorSchema",
    "ModuleInput",
    "ModuleValidationRequest",
    "ModuleValidationResponse",
    "SessionModuleResponse",
    "SessionResponse",
    "AdmissionResponse",
    "ModuleProgressResponse",
    "ParticipantProgressResponse",
    "AttemptResponse",
    "AttemptEventRequest",
    "AttemptUpdateResponse",
    "DistributionSummary",
    "ModuleSummaryResponse",
    "SessionSummaryResponse",
    "ScoreRecordResponse",
    "SessionScoresResponse",
    "MaintenanceResponse",
]
