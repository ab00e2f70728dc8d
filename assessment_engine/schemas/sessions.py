"""
Pydantic schemas for session, admission and participant progress endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class FieldErrorSchema(BaseModel):
    """A single field-scoped validation violation."""

    field: str = Field(..., description="Offending field, e.g. modules[2].weight")
    message: str = Field(..., description="Human-readable message")
    code: str = Field(..., description="Machine-readable error code")


class ModuleInput(BaseModel):
    """A module as submitted for validation.

    Only types are enforced here; range and uniqueness rules are checked by
    the module scheduler so every violation is reported together.
    """

    test_id: int = Field(..., description="Test bound to this module")
    sequence: int = Field(..., description="1-based position in the session")
    is_required: bool = Field(True, description="Whether the module must be finished")
    weight: float = Field(1.0, description="Weight used for composite scoring")


class ModuleValidationRequest(BaseModel):
    """Schema for validating a session's module configuration."""

    modules: List[ModuleInput] = Field(..., description="Modules in any order")


class ModuleValidationResponse(BaseModel):
    """Schema for module validation results."""

    valid: bool = Field(..., description="True when no violations were found")
    errors: List[FieldErrorSchema] = Field(
        default_factory=list, description="Every violation found"
    )
    ordered: List[ModuleInput] = Field(
        default_factory=list,
        description="Modules in traversal order (only when valid)",
    )


class SessionModuleResponse(BaseModel):
    """A session module joined with its test definition."""

    test_id: int
    sequence: int
    is_required: bool
    weight: float
    test_name: str = ""
    category: str = ""
    module_type: str = ""
    time_limit: int = Field(..., description="Time limit in minutes")
    total_questions: int


class SessionResponse(BaseModel):
    """Schema for a session snapshot."""

    id: int = Field(..., description="Session ID")
    name: str
    session_code: str = Field(..., description="Join code")
    target_position: str = ""
    start_time: datetime
    end_time: datetime
    max_participants: Optional[int] = Field(
        None, description="Capacity (None = unlimited)"
    )
    current_participants: int
    is_full: bool
    stored_status: str = Field(..., description="Status as persisted")
    status: str = Field(..., description="Effective status at request time")
    auto_expire: bool
    allow_late_entry: bool
    progress_percentage: float = Field(
        ..., description="Share of the session window elapsed (0-100)"
    )
    time_remaining_seconds: int
    duration_hours: int
    modules: List[SessionModuleResponse] = Field(
        default_factory=list, description="Modules in traversal order"
    )


class AdmissionResponse(BaseModel):
    """Schema for a successful admission."""

    session_id: int
    participant_id: int
    allow: bool
    reason: str
    first_admission: bool = Field(
        ..., description="True if this entry counted against capacity"
    )
    current_participants: int
    status: str = Field(..., description="Effective session status")


class ModuleProgressResponse(BaseModel):
    """One module's progress for a participant."""

    test_id: int
    sequence: int
    is_required: bool
    test_name: str = ""
    attempt_id: Optional[int] = None
    status: str = Field(..., description="Attempt status (not_started if none)")
    answered_questions: int = 0
    total_questions: int
    progress_percentage: float = 0.0
    time_spent: int = Field(0, description="Seconds spent")
    time_remaining_seconds: Optional[int] = None
    expected_completion_at: Optional[datetime] = None


class ParticipantProgressResponse(BaseModel):
    """Schema for a participant's progress through a session."""

    session_id: int
    participant_id: int
    session_status: str
    registered: bool
    roster_status: Optional[str] = None
    modules: List[ModuleProgressResponse]
    next_test_id: Optional[int] = Field(
        None, description="First unfinished module in order (None when done)"
    )
    required_modules_finished: bool
