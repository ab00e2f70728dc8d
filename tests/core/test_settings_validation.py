"""
Tests for Settings configuration validation in config.py.
"""
import pytest
from pydantic import ValidationError

from assessment_engine.core.config import Settings


class TestDefaults:
    """Tests for default settings values."""

    def test_defaults(self):
        settings = Settings()
        assert settings.ENFORCE_MODULE_ORDER is True
        assert settings.LATE_ENTRY_CUTOFF_MINUTES is None
        assert settings.DEFAULT_PASSING_SCORE == pytest.approx(60.0)
        assert settings.MAX_SESSION_MODULES == 20


class TestWeightBoundsValidation:
    """Tests for MODULE_WEIGHT_MIN/MAX validation."""

    def test_non_positive_minimum_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(MODULE_WEIGHT_MIN=0.0)
        assert "MODULE_WEIGHT_MIN must be positive" in str(exc_info.value)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(MODULE_WEIGHT_MIN=5.0, MODULE_WEIGHT_MAX=1.0)
        assert "MODULE_WEIGHT_MAX must be >= MODULE_WEIGHT_MIN" in str(exc_info.value)


class TestFieldBounds:
    """Tests for constrained numeric fields."""

    def test_passing_score_range(self):
        with pytest.raises(ValidationError):
            Settings(DEFAULT_PASSING_SCORE=120.0)

    def test_negative_late_entry_cutoff_rejected(self):
        with pytest.raises(ValidationError):
            Settings(LATE_ENTRY_CUTOFF_MINUTES=-1)

    def test_duration_window_must_be_non_empty(self):
        with pytest.raises(ValidationError):
            Settings(SESSION_MIN_DURATION_MINUTES=120, SESSION_MAX_DURATION_HOURS=1)
