"""
Main FastAPI application entry point.
"""
import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assessment_engine.api.v1.api import api_router
from assessment_engine.core.config import settings
from assessment_engine.core.exceptions import (
    NotRegisteredError,
    StateConflictError,
    ValidationError,
)
from assessment_engine.core.logging_config import setup_logging
from assessment_engine.middleware import RequestLoggingMiddleware

setup_logging()
logger = logging.getLogger(__name__)


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "sessions",
        "description": "Session snapshots, module validation, admission and module start",
    },
    {
        "name": "attempts",
        "description": "Attempt snapshots and answer/finish/tick events",
    },
    {
        "name": "reports",
        "description": "Session outcome summaries and derived scores",
    },
    {
        "name": "maintenance",
        "description": "Caller-driven status write-back and attempt expiry sweep",
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=(
            "**Assessment Session Engine** - lifecycle of scheduled assessment "
            "sessions and the per-module test attempts taken inside them.\n\n"
            "This API provides:\n"
            "* Session status derived from the schedule at request time\n"
            "* Transactional admission with capacity limits\n"
            "* Attempt tracking with test and session time limits\n"
            "* Completion, score distribution and trend summaries"
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(ValidationError)
    async def engine_validation_handler(request: Request, exc: ValidationError):
        """
        Configuration that failed validation: every field error at once.
        """
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": exc.message,
                "errors": [e.to_dict() for e in exc.errors],
            },
        )

    @app.exception_handler(StateConflictError)
    async def state_conflict_handler(request: Request, exc: StateConflictError):
        """
        Operation not allowed in the current session/attempt state.
        """
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message, "reason": exc.reason},
        )

    @app.exception_handler(NotRegisteredError)
    async def not_registered_handler(request: Request, exc: NotRegisteredError):
        """
        Participant is not on the session roster.
        """
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": exc.message, "reason": exc.reason},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handle HTTP exceptions.
        """
        if exc.status_code >= 500:
            logger.error(
                f"HTTP {exc.status_code} on {request.method} {request.url.path}: "
                f"{exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """
        Handle request validation errors.
        """
        errors = []
        for error in exc.errors():
            errors.append(
                {
                    "loc": list(error.get("loc", [])),
                    "msg": str(error.get("msg", "")),
                    "type": str(error.get("type", "")),
                }
            )

        logger.info(
            f"Request validation failed for {request.method} {request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id (UUID) for each exception so a specific
        failure can be traced in the logs. The error_id is included in the
        response body and logged with the full exception.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"error_id": error_id},
        )

        # Don't leak internal details
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
