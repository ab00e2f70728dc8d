"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import re
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable, Dict

from assessment_engine.core.logging_config import request_id_context

logger = logging.getLogger(__name__)

# Resource ids embedded in v1 paths, e.g. /v1/sessions/3/participants/101/enter
_PATH_IDS = (
    ("session_id", re.compile(r"/sessions/(\d+)")),
    ("participant_id", re.compile(r"/participants/(\d+)")),
    ("attempt_id", re.compile(r"/attempts/(\d+)")),
)


def resource_ids_from_path(path: str) -> Dict[str, int]:
    """Pull session/participant/attempt ids out of a request path."""
    ids: Dict[str, int] = {}
    for name, pattern in _PATH_IDS:
        match = pattern.search(path)
        if match:
            ids[name] = int(match.group(1))
    return ids


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Every request gets an ``X-Request-ID`` (the caller's, when sent) that is
    attached to all log entries for the request and echoed on the response.
    Session, participant and attempt ids found in the path are logged as
    structured fields so one participant's traffic can be followed.
    """

    # Polled by load balancers; logged at DEBUG only
    QUIET_PATHS = ("/health",)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint in chain

        Returns:
            Response from the endpoint
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_context.set(request_id)

        start_time = time.time()
        method = request.method
        path = str(request.url.path)
        quiet = path.endswith(self.QUIET_PATHS)
        base_fields = {
            "method": method,
            "path": path,
            "client_host": request.client.host if request.client else "unknown",
            **resource_ids_from_path(path),
        }

        logger.log(
            logging.DEBUG if quiet else logging.INFO,
            "Incoming request",
            extra=base_fields,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        status_code = response.status_code
        extra_fields = {
            **base_fields,
            "status_code": status_code,
            "duration_ms": round((time.time() - start_time) * 1000, 2),
        }

        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        else:
            logger.log(
                logging.DEBUG if quiet else logging.INFO,
                "Request completed",
                extra=extra_fields,
            )

        return response
