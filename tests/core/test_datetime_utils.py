"""
Tests for datetime utilities and clocks.
"""
from datetime import datetime, timedelta, timezone

import pytest

from assessment_engine.core.datetime_utils import (
    FixedClock,
    SystemClock,
    ensure_timezone_aware,
    get_clock,
    utc_now,
    whole_seconds_between,
)


class TestEnsureTimezoneAware:
    """Tests for ensure_timezone_aware function."""

    def test_naive_datetime_becomes_utc(self):
        """Test that a naive datetime is tagged as UTC."""
        naive_dt = datetime(2030, 1, 15, 12, 30, 45)

        result = ensure_timezone_aware(naive_dt)

        assert result.tzinfo == timezone.utc
        assert result.hour == 12
        assert result.minute == 30

    def test_aware_datetime_unchanged(self):
        """Test that an aware datetime is returned as the same object."""
        tz_plus_5 = timezone(timedelta(hours=5))
        aware_dt = datetime(2030, 1, 15, 12, 30, tzinfo=tz_plus_5)

        assert ensure_timezone_aware(aware_dt) is aware_dt

    def test_none_raises(self):
        with pytest.raises(ValueError):
            ensure_timezone_aware(None)


class TestWholeSecondsBetween:
    """Tests for whole_seconds_between."""

    def test_truncates_fractional_seconds(self, t0):
        later = t0 + timedelta(seconds=59, milliseconds=999)
        assert whole_seconds_between(t0, later) == 59

    def test_never_negative(self, t0):
        assert whole_seconds_between(t0, t0 - timedelta(minutes=5)) == 0

    def test_mixed_naive_and_aware(self, t0):
        naive_start = t0.replace(tzinfo=None)
        assert whole_seconds_between(naive_start, t0 + timedelta(minutes=1)) == 60


class TestClocks:
    """Tests for the injectable time sources."""

    def test_fixed_clock_advance_and_set(self, t0):
        clock = FixedClock(t0)
        assert clock.now() == t0

        clock.advance(minutes=35)
        assert clock.now() == t0 + timedelta(minutes=35)

        clock.set(t0 + timedelta(hours=2))
        assert clock.now() == t0 + timedelta(hours=2)

    def test_fixed_clock_tags_naive_as_utc(self):
        clock = FixedClock(datetime(2030, 1, 1, 8, 0))
        assert clock.now().tzinfo == timezone.utc

    def test_system_clock_is_utc(self):
        before = utc_now()
        now = SystemClock().now()
        assert now.tzinfo == timezone.utc
        assert now >= before

    def test_default_clock(self):
        assert isinstance(get_clock(), SystemClock)
