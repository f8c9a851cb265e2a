"""HTTP middleware serving cached GET responses.

Only ``GET`` requests under a configured resource class are considered.
Misses run the handler; a 2xx JSON body is stored with the class TTL. Every
response that went through the cache carries ``X-Cache: HIT`` or ``MISS``.
"""

from __future__ import annotations

import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from pathways_gate.services.response_cache import ResponseCache, build_cache_key

logger = logging.getLogger(__name__)

CACHE_STATUS_HEADER = "X-Cache"


async def response_cache_middleware(request: Request, call_next) -> Response:
    """Serve repeat GETs from the response cache.

    Side Effects:
        - Writes successful JSON bodies to the store on a miss
        - Adds X-Cache header to cacheable responses
    """

    cache: ResponseCache = request.app.state.response_cache
    if not cache.enabled or request.method != "GET":
        return await call_next(request)

    match = cache.rule_for(request.url.path)
    if match is None:
        return await call_next(request)

    resource, rule = match
    identity = getattr(request.state, "identity", None)
    if rule.public_only and identity is not None:
        return await call_next(request)

    key = build_cache_key(resource, request.url.path, request.query_params.multi_items(), identity)

    entry = await cache.lookup(key)
    if entry is not None:
        return JSONResponse(
            status_code=entry["status"],
            content=entry["body"],
            headers={CACHE_STATUS_HEADER: "HIT"},
        )

    response = await call_next(request)
    if not 200 <= response.status_code < 300:
        return response
    if not response.headers.get("content-type", "").startswith("application/json"):
        return response

    raw = b"".join([chunk async for chunk in response.body_iterator])
    try:
        body = json.loads(raw)
    except ValueError:
        logger.warning("cache.unparseable_body", extra={"resource": resource, "path": request.url.path})
    else:
        await cache.save(key, status_code=response.status_code, body=body, ttl_seconds=rule.ttl_seconds)

    replay = Response(content=raw, status_code=response.status_code, background=response.background)
    # raw_headers keeps repeated fields such as Set-Cookie.
    replay.raw_headers = list(response.raw_headers)
    replay.headers[CACHE_STATUS_HEADER] = "MISS"
    return replay
