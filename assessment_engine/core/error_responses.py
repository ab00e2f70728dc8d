"""
Standardized error response messages and builders.

Keeps user-facing HTTP error messages in one place so every endpoint
reports missing rows and server failures the same way.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Include relevant IDs in parentheses when helpful for debugging: "(ID: 123)"
- Use "Please try again later." for transient server errors

Domain refusals (closed session, invalid module set, unregistered
participant) are raised as ``assessment_engine.core.exceptions`` types and
mapped to responses in ``assessment_engine.main``; the builders here are for
conditions detected in the HTTP layer itself.

Usage:
    from assessment_engine.core.error_responses import ErrorMessages, raise_not_found

    if session is None:
        raise_not_found(ErrorMessages.SESSION_NOT_FOUND)
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Not Found Errors (404)
    # ==========================================================================
    SESSION_NOT_FOUND = "Assessment session not found."
    ATTEMPT_NOT_FOUND = "Test attempt not found."
    MODULE_NOT_IN_SESSION = "This test is not part of the session."

    # ==========================================================================
    # Template Methods for Dynamic Messages
    # ==========================================================================
    @staticmethod
    def session_code_not_found(code: str) -> str:
        """Message when no session uses the given join code."""
        return f"No session found for code {code}."

    @staticmethod
    def module_out_of_order(expected_test_id: int) -> str:
        """Message when a participant skips ahead in an ordered session."""
        return (
            f"Modules must be taken in order. "
            f"Please continue with test {expected_test_id}."
        )

    @staticmethod
    def database_operation_failed(operation: str) -> str:
        """Generic message for database operation failures."""
        return f"Failed to {operation}. Please try again later."


# ==============================================================================
# HTTPException Builder Functions
# ==============================================================================


def raise_not_found(detail: str) -> NoReturn:
    """Raise a 404 Not Found exception.

    Use when a requested resource doesn't exist.

    Args:
        detail: User-facing error message

    Raises:
        HTTPException: 404 Not Found
    """
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )

