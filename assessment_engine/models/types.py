"""Custom SQLAlchemy types for cross-database compatibility.

This module provides custom column types that work across the database
backends (PostgreSQL, SQLite) used in production and testing.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    A timezone-aware datetime type that always round-trips as UTC.

    - On PostgreSQL: ``TIMESTAMP WITH TIME ZONE``, returned aware
    - On SQLite: stored without offset; naive values read back are tagged UTC

    Every time comparison in the engine is made between aware datetimes, so
    this keeps SQLite-backed tests behaving like production.

    Usage:
        start_time = Column(UTCDateTime(), nullable=False)
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Any:
        """Normalise to UTC before writing."""
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect) -> Optional[datetime]:
        """Attach UTC to naive values coming back from the database."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
