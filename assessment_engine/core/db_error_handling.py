"""
Database error handling utilities.

Centralizes the pattern used by every write path:
1. Roll back the database session on error
2. Log the error with context
3. Raise an appropriate HTTPException

Domain errors (``AssessmentEngineError`` subclasses) and HTTPExceptions
raised inside the block are re-raised unchanged after the rollback so the
application's exception handlers can map them to 403/409/422 responses.

Usage:
    from assessment_engine.core.db_error_handling import handle_db_error

    with handle_db_error(db, "admit participant"):
        row = admit_participant(db, session_id, participant_id, now)
        db.commit()
        return row
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from assessment_engine.core.error_responses import ErrorMessages
from assessment_engine.core.exceptions import AssessmentEngineError

logger = logging.getLogger(__name__)


class DatabaseOperationError(Exception):
    """Exception raised when a database operation fails outside a request.

    Used by maintenance entry points (CLI, schedulers) where an
    HTTPException is not appropriate.

    Attributes:
        operation_name: Human-readable name of the operation that failed
        original_error: The underlying exception that caused the failure
        message: The formatted error message
    """

    def __init__(
        self,
        operation_name: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        self.operation_name = operation_name
        self.original_error = original_error
        self.message = message or f"Failed to {operation_name}: {str(original_error)}"
        super().__init__(self.message)


@contextmanager
def handle_db_error(
    db: Session,
    operation_name: str,
    *,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    log_level: int = logging.ERROR,
) -> Generator[None, None, None]:
    """Context manager for handling database errors consistently.

    Args:
        db: The SQLAlchemy database session to rollback on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "admit participant", "apply attempt event").
        status_code: HTTP status code for unexpected failures. Defaults to 500.
        log_level: Logging level for error messages. Defaults to logging.ERROR.

    Raises:
        HTTPException: On unexpected exceptions, with the session rolled back.
        AssessmentEngineError: Re-raised unchanged after rollback.
    """
    try:
        yield
    except (HTTPException, AssessmentEngineError):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()

        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )

        raise HTTPException(
            status_code=status_code,
            detail=ErrorMessages.database_operation_failed(operation_name),
        )


@contextmanager
def wrap_db_operation(
    db: Session, operation_name: str
) -> Generator[None, None, None]:
    """Non-HTTP variant: roll back and raise DatabaseOperationError.

    Domain errors pass through unchanged.
    """
    try:
        yield
    except AssessmentEngineError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Database error during {operation_name}: {e}", exc_info=True)
        raise DatabaseOperationError(operation_name, e) from e
