"""
Pydantic schemas for reporting and maintenance endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Optional


class DistributionSummary(BaseModel):
    """Summary statistics of a set of scaled scores (0-100)."""

    count: int
    mean: float
    median: float
    stddev: float = Field(..., description="Population standard deviation")
    min: float
    max: float


class ModuleSummaryResponse(BaseModel):
    """Per-module breakdown in schedule order."""

    test_id: int
    sequence: int
    name: str
    category: str
    weight: float
    is_required: bool
    attempts: int
    completed: int
    expired: int
    completion_rate: float
    scores: DistributionSummary


class SessionSummaryResponse(BaseModel):
    """Schema for a session outcome summary."""

    session_id: int
    session_code: str
    status: str = Field(..., description="Effective status")
    progress_percentage: float
    registered_participants: Optional[int] = None
    participants: int = Field(..., description="Participants who started a module")
    attendance_rate: Optional[float] = None
    total_attempts: int
    completed_attempts: int = Field(
        ..., description="completed + auto_completed attempts"
    )
    expired_attempts: int = Field(..., description="Dropouts (no answers in time)")
    in_progress_attempts: int
    completion_rate: float
    modules: List[ModuleSummaryResponse]
    scores: DistributionSummary
    weighted_average: Optional[float] = None
    category_diversity: float = Field(..., description="Normalised entropy, 0-1")
    score_trend: str = Field(..., description="up, down or stable")


class ScoreRecordResponse(BaseModel):
    """Derived score for one attempt."""

    attempt_id: int
    participant_id: int
    test_id: int
    status: str
    scaled_score: Optional[float] = None
    percentile: Optional[float] = Field(
        None, description="Percent of the test cohort scoring strictly lower"
    )
    grade: Optional[str] = None
    passed: Optional[bool] = None


class SessionScoresResponse(BaseModel):
    """All derived scores for a session."""

    session_id: int
    scores: List[ScoreRecordResponse]


class MaintenanceResponse(BaseModel):
    """Counts reported by a maintenance sweep."""

    sessions_checked: int
    sessions_updated: int
    attempts_checked: int
    attempts_finalized: int
