"""Pydantic schemas for the administrative endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pathways_gate.core.policies import PolicyName
from pathways_gate.services.blocklist import DEFAULT_BLOCK_SECONDS


class RateLimitUsage(BaseModel):
    """Quota usage of one limiter key."""

    policy: PolicyName
    key: str = Field(..., description="Caller key: 'user:<id>' or 'ip:<addr>'.")
    limit: int
    remaining: int
    reset_at: int = Field(..., description="UNIX epoch seconds when a slot frees up.")
    window_seconds: int


class RateLimitResetRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Caller key: 'user:<id>' or 'ip:<addr>'.")
    policy: PolicyName = PolicyName.ANONYMOUS


class RateLimitResetResponse(BaseModel):
    key: str
    policy: PolicyName
    reset: bool


class BlockRequest(BaseModel):
    ip: str = Field(..., min_length=1, max_length=64)
    duration_seconds: int = Field(DEFAULT_BLOCK_SECONDS, ge=1)


class BlockResponse(BaseModel):
    ip: str
    blocked_until: float = Field(..., description="UNIX time the block lapses.")


class CacheInvalidateRequest(BaseModel):
    pattern: str = Field(
        ...,
        min_length=1,
        description="Glob over cache keys; a bare word matches as a substring.",
    )


class CacheInvalidateResponse(BaseModel):
    pattern: str
    removed: int
