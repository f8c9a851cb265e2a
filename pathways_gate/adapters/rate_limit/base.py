"""Rate limiter interface.

Middleware and admin routes only see ``AbstractRateLimiter``; where the
window logs live is the store's concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one admission decision or usage query.

    Attributes:
        allowed: True when the request was counted (or could be, for usage).
        limit: Requests admitted per window under the applied policy.
        remaining: Admissions left before the window is full.
        reset_at: UNIX epoch seconds at which the oldest counted request
            leaves the window and frees a slot.
        retry_after_seconds: Whole seconds to wait after a rejection, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Counts requests per key against a limit and window supplied per call."""

    @abstractmethod
    async def check(self, key: str, *, limit: int, window_seconds: float) -> RateLimitResult:
        """Admit or reject one request for key, recording it only if admitted.

        Args:
            key: Policy-scoped caller key, e.g. ``anon:ip:1.2.3.4``.
            limit: Requests admitted per window.
            window_seconds: Window length in seconds.
        """
        raise NotImplementedError

    @abstractmethod
    async def usage(self, key: str, *, limit: int, window_seconds: float) -> RateLimitResult:
        """Report the budget for key without recording anything."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> bool:
        """Forget every request counted for key. Returns True if any were."""
        raise NotImplementedError
