"""
Pydantic schemas for attempt endpoints.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from libs.domain_types import AttemptEvent


class AttemptResponse(BaseModel):
    """Schema for an attempt snapshot."""

    id: int = Field(..., description="Attempt ID")
    session_id: int
    participant_id: int
    test_id: int
    status: str = Field(
        ...,
        description="not_started, in_progress, completed, auto_completed or expired",
    )
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = Field(None, description="Set once terminal")
    time_spent: int = Field(..., description="Whole seconds spent")
    answered_questions: int
    total_questions: int
    last_activity_at: Optional[datetime] = None
    progress_percentage: float
    time_remaining_seconds: Optional[int] = None
    expected_completion_at: Optional[datetime] = None
    is_time_expired: bool

    class Config:
        """Pydantic configuration."""

        from_attributes = True


class AttemptEventRequest(BaseModel):
    """Schema for applying an event to an attempt."""

    event: AttemptEvent = Field(..., description="answer, finish or tick")
    answered_count: Optional[int] = Field(
        None,
        description=(
            "For answer events: absolute number of questions answered so far. "
            "Omit to count one more answer."
        ),
    )


class AttemptUpdateResponse(BaseModel):
    """Schema for the result of an attempt event or start."""

    attempt: AttemptResponse
    changed: bool = Field(..., description="Whether the attempt was modified")
    already_finalized: bool = Field(
        False, description="The attempt was terminal before this request"
    )
    finalized_by: Optional[str] = Field(
        None, description="finish, time_limit or session_closed"
    )
