"""Request correlation and access logging.

``request_id_middleware`` is registered last, so it wraps every other
middleware: 403 and 429 responses produced before routing still carry the
correlation id, and one ``http.request`` access line is logged per request
with the outcome of admission and caching.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from pathways_gate.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Request-Duration-ms"


def _access_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in (403, 429):
        return logging.WARNING
    return logging.INFO


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation id to the request and log its outcome.

    The id comes from the configured header (``LOG_REQUEST_ID_HEADER``) or is
    generated, lives in a context variable while the request runs, and is
    echoed back with the elapsed time.

    Example:
        >>> # Request:  {"X-Request-ID": "req-abc-123"}
        >>> # Response: {"X-Request-ID": "req-abc-123", "X-Request-Duration-ms": "1.07"}
    """

    header_name = request.app.state.settings.log.request_id_header
    request_id = request.headers.get(header_name) or uuid.uuid4().hex
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.log(
            _access_level(response.status_code),
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "cache": response.headers.get("X-Cache"),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(DURATION_HEADER, f"{elapsed_ms:.2f}")
    return response
