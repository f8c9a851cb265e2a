"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → appropriate HTTP status (400, 403, 404, 429)
- RateLimitExceededError → 429 with ``retryAfter`` and Retry-After header
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from pathways_gate.core.errors import (
    AppError,
    AuthenticationAppError,
    NotFoundAppError,
    RateLimitExceededError,
    ValidationAppError,
)
from pathways_gate.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""
    if isinstance(exc, RateLimitExceededError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 403
    if isinstance(exc, NotFoundAppError):
        return 404
    if isinstance(exc, ValidationAppError):
        return 400
    return 500


def error_content(exc: AppError) -> dict[str, Any]:
    """Build the ``{"error": {...}}`` body for a domain error."""
    content: dict[str, Any] = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        content["details"] = exc.details
    return {"error": content}


def rate_limit_response(exc: RateLimitExceededError) -> JSONResponse:
    """Build the 429 response sent to throttled callers.

    The body keeps the platform's flat shape (``error``, ``message``,
    ``retryAfter``) that existing clients parse.
    """
    headers = dict(exc.headers or {})
    headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too Many Requests",
            "message": exc.message,
            "retryAfter": exc.retry_after,
            "request_id": get_request_id(),
        },
        headers=headers,
    )


INTERNAL_ERROR = AppError(
    code="internal_server_error",
    message="An unexpected error occurred. Please try again later.",
)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render a domain error raised from a route or dependency.

    Expected errors (4xx) are logged at warning, anything mapped to 5xx at
    error. Throttling errors keep the flat 429 body.
    """
    if isinstance(exc, RateLimitExceededError):
        return rate_limit_response(exc)

    status_code = status_for(exc)
    logger.log(
        logging.ERROR if status_code >= 500 else logging.WARNING,
        "app_error.handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=status_code, content=error_content(exc))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, answer with a generic 500."""
    logger.error(
        "app_error.unhandled",
        extra={
            "error_type": type(exc).__name__,
            "method": request.method,
            "path": request.url.path,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return JSONResponse(status_code=500, content=error_content(INTERNAL_ERROR))


def setup_exception_handlers(app) -> None:
    """Register the domain and fallback handlers on app (idempotent)."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
