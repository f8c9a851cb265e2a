"""Admission control middleware.

Every inbound request is keyed (authenticated user, else proxy-aware client
address), classified into a policy and counted by the sliding-window limiter
before its handler runs.

Rate limiting strategy:
- Sliding window per (policy, caller) pair.
- Endpoint classes (auth, AI, uploads, search) have their own budgets.
- Failures inside admission fail open: the request proceeds and the error
  is logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from pathways_gate.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from pathways_gate.adapters.rate_limit.sliding_window import hash_limiter_key
from pathways_gate.core.auth import Identity
from pathways_gate.core.config import RateLimitSettings
from pathways_gate.core.errors import RateLimitExceededError
from pathways_gate.core.exception_handlers import rate_limit_response
from pathways_gate.core.logging import get_request_id
from pathways_gate.core.policies import Policy, PolicyTable, classify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    """Outcome of admission control for one request."""

    policy: Policy
    client_key: str
    result: RateLimitResult

    @property
    def limiter_key(self) -> str:
        return limiter_key(self.policy, self.client_key)


def get_client_ip(request: Request, *, trust_proxy: bool = True) -> str:
    """Return the caller's address.

    Behind a proxy the first ``X-Forwarded-For`` entry wins, then
    ``X-Real-IP``; otherwise the raw connection address.
    """

    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()

    return request.client.host if request.client else "unknown"


def build_client_key(identity: Identity | None, client_ip: str) -> str:
    """Build the caller part of a limiter key (``user:<id>`` or ``ip:<addr>``)."""

    if identity is not None:
        return f"user:{identity.user_id}"
    return f"ip:{client_ip}"


def limiter_key(policy: Policy, client_key: str) -> str:
    return f"{policy.key_prefix}:{client_key}"


def quota_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def is_exempt(request: Request, client_ip: str, config: RateLimitSettings) -> bool:
    """Return True for exempt paths and for callers on an exempt address.

    An address is exempt only when both the connection peer and the
    proxy-derived client address are listed, so a forwarded header cannot
    claim loopback and traffic relayed by a local proxy is still counted.
    """

    if request.url.path in config.exempt_paths:
        return True
    peer = request.client.host if request.client else None
    return peer in config.exempt_ips and client_ip in config.exempt_ips


async def admit(request: Request, client_ip: str) -> Admission:
    """Classify the request and consume one unit of its policy's budget."""

    state = request.app.state
    limiter: AbstractRateLimiter = state.rate_limiter
    policies: PolicyTable = state.policies

    identity = getattr(request.state, "identity", None)
    policy = policies[
        classify(
            request.method,
            request.url.path,
            identity,
            api_prefix=state.settings.app.api_prefix,
        )
    ]
    client_key = build_client_key(identity, client_ip)
    result = await limiter.check(
        limiter_key(policy, client_key),
        limit=policy.max_requests,
        window_seconds=policy.window_seconds,
    )
    return Admission(policy=policy, client_key=client_key, result=result)


def _blocked_response() -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={
            "error": "Forbidden",
            "message": "Your IP has been blocked. Please contact support.",
            "request_id": get_request_id(),
        },
    )


async def admission_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing rate limit policies.

    Allowed requests get X-RateLimit-Limit/Remaining/Reset headers. Denied
    requests get 429 with ``retryAfter`` and a Retry-After header; the
    handler is not invoked.
    """

    config: RateLimitSettings = request.app.state.settings.rate_limit
    if not config.enabled:
        return await call_next(request)

    client_ip = get_client_ip(request, trust_proxy=config.trust_proxy)
    if is_exempt(request, client_ip, config):
        return await call_next(request)

    try:
        if await request.app.state.blocklist.is_blocked(client_ip):
            logger.warning("rate_limit.blocked_ip", extra={"path": request.url.path})
            return _blocked_response()
        admission = await admit(request, client_ip)
    except Exception as exc:
        logger.error(
            "rate_limit.error",
            extra={"error_type": type(exc).__name__, "path": request.url.path},
            exc_info=True,
        )
        return await call_next(request)

    result = admission.result
    headers = quota_headers(result) if config.include_headers else {}
    key_hash = hash_limiter_key(admission.limiter_key)

    if not result.allowed:
        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": admission.policy.name.value,
                "key_hash": key_hash,
                "limit": result.limit,
                "window_s": admission.policy.window_seconds,
                "retry_after_s": retry_after,
                "path": request.url.path,
            },
        )
        return rate_limit_response(
            RateLimitExceededError(
                code="rate_limit_exceeded",
                message=admission.policy.message,
                retry_after=retry_after,
                headers=headers,
            )
        )

    logger.debug(
        "rate_limit.allowed",
        extra={
            "policy": admission.policy.name.value,
            "key_hash": key_hash,
            "remaining": result.remaining,
        },
    )
    response = await call_next(request)
    response.headers.update(headers)
    return response
