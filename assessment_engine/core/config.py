"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Assessment Session Engine"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database
    # SQLite works for local development; use PostgreSQL in production so the
    # admission row lock (SELECT ... FOR UPDATE) is actually enforced.
    DATABASE_URL: str = "sqlite:///./assessment.db"
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 20

    # Session scheduling
    SESSION_MIN_DURATION_MINUTES: int = 30
    SESSION_MAX_DURATION_HOURS: int = 24
    MAX_PARTICIPANTS_LIMIT: int = 1000
    SESSION_CODE_LENGTH: int = 8

    # Module scheduling
    MAX_SESSION_MODULES: int = 20
    MODULE_WEIGHT_MIN: float = 0.1
    MODULE_WEIGHT_MAX: float = 10.0
    # Require modules to be started in sequence order
    ENFORCE_MODULE_ORDER: bool = True

    # Admission
    # Minutes after start_time after which first entry needs allow_late_entry.
    # None disables the late-entry cutoff.
    LATE_ENTRY_CUTOFF_MINUTES: Optional[int] = Field(
        default=None,
        ge=0,
        description="Late-entry cutoff in minutes after session start (None = no cutoff)",
    )

    # Scoring and reporting
    DEFAULT_PASSING_SCORE: float = Field(
        default=60.0,
        ge=0.0,
        le=100.0,
        description="Scaled score (0-100) required to pass a module",
    )
    TREND_THRESHOLD_PCT: float = Field(
        default=5.0,
        ge=0.0,
        description="Relative change (percent) beyond which a trend is up/down",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_weight_bounds(self) -> Self:
        """Validate MODULE_WEIGHT_MIN/MAX form a positive range."""
        if self.MODULE_WEIGHT_MIN <= 0:
            raise ValueError(
                f"MODULE_WEIGHT_MIN must be positive, got {self.MODULE_WEIGHT_MIN}"
            )
        if self.MODULE_WEIGHT_MAX < self.MODULE_WEIGHT_MIN:
            raise ValueError(
                "MODULE_WEIGHT_MAX must be >= MODULE_WEIGHT_MIN, "
                f"got {self.MODULE_WEIGHT_MAX} < {self.MODULE_WEIGHT_MIN}"
            )
        return self

    @model_validator(mode="after")
    def validate_session_duration_bounds(self) -> Self:
        """Validate the session duration window is non-empty."""
        if self.SESSION_MIN_DURATION_MINUTES > self.SESSION_MAX_DURATION_HOURS * 60:
            raise ValueError(
                "SESSION_MIN_DURATION_MINUTES cannot exceed SESSION_MAX_DURATION_HOURS"
            )
        return self


settings = Settings()
