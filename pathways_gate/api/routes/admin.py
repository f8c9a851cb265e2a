from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from pathways_gate.adapters.rate_limit.base import AbstractRateLimiter
from pathways_gate.api.dependencies import (
    get_blocklist,
    get_policies,
    get_rate_limiter,
    get_response_cache,
)
from pathways_gate.core.auth import require_admin
from pathways_gate.core.policies import PolicyName, PolicyTable
from pathways_gate.core.rate_limit import limiter_key
from pathways_gate.schemas.admin import (
    BlockRequest,
    BlockResponse,
    CacheInvalidateRequest,
    CacheInvalidateResponse,
    RateLimitResetRequest,
    RateLimitResetResponse,
    RateLimitUsage,
)
from pathways_gate.services.blocklist import Blocklist
from pathways_gate.services.response_cache import ResponseCache

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/rate-limits/usage", response_model=RateLimitUsage)
async def rate_limit_usage(
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    policies: Annotated[PolicyTable, Depends(get_policies)],
    key: Annotated[str, Query(min_length=1, description="'user:<id>' or 'ip:<addr>'")],
    policy: PolicyName = PolicyName.ANONYMOUS,
) -> RateLimitUsage:
    """Report a caller's quota under one policy without consuming any."""

    resolved = policies[policy]
    result = await limiter.usage(
        limiter_key(resolved, key),
        limit=resolved.max_requests,
        window_seconds=resolved.window_seconds,
    )
    return RateLimitUsage(
        policy=policy,
        key=key,
        limit=result.limit,
        remaining=result.remaining,
        reset_at=result.reset_at,
        window_seconds=resolved.window_seconds,
    )


@router.post("/rate-limits/reset", response_model=RateLimitResetResponse)
async def reset_rate_limit(
    payload: RateLimitResetRequest,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
    policies: Annotated[PolicyTable, Depends(get_policies)],
) -> RateLimitResetResponse:
    reset = await limiter.reset(limiter_key(policies[payload.policy], payload.key))
    return RateLimitResetResponse(key=payload.key, policy=payload.policy, reset=reset)


@router.post("/blocks", response_model=BlockResponse)
async def block_ip(
    payload: BlockRequest,
    blocklist: Annotated[Blocklist, Depends(get_blocklist)],
) -> BlockResponse:
    until = await blocklist.block(payload.ip, payload.duration_seconds)
    return BlockResponse(ip=payload.ip, blocked_until=until)


@router.delete("/blocks/{ip}")
async def unblock_ip(ip: str, blocklist: Annotated[Blocklist, Depends(get_blocklist)]) -> dict:
    return {"ip": ip, "unblocked": await blocklist.unblock(ip)}


@router.post("/cache/invalidate", response_model=CacheInvalidateResponse)
async def invalidate_cache(
    payload: CacheInvalidateRequest,
    cache: Annotated[ResponseCache, Depends(get_response_cache)],
) -> CacheInvalidateResponse:
    removed = await cache.invalidate(payload.pattern)
    return CacheInvalidateResponse(pattern=payload.pattern, removed=removed)


@router.get("/cache/stats")
def cache_stats(cache: Annotated[ResponseCache, Depends(get_response_cache)]) -> dict:
    return cache.stats()
