"""Domain errors raised by the store, limiter, services and dependencies.

Each error carries a stable ``code`` that clients and log queries can match
on. The HTTP status for each class lives in ``exception_handlers.status_for``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional structured context attached to an error.

    Only non-sensitive values belong here: it is returned to clients and
    logged as-is.
    """

    hint: str
    policy: str
    limit: int
    retry_after: int
    backend: str
    operation: str
    resource: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base class for expected failures.

    Attributes:
        code: Machine-readable error code (``invalid_api_key``, ``job_not_found``, ...).
        message: Human-readable explanation, safe to show to callers.
        details: Extra structured context, or None.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Input rejected by a service (bad block duration, empty address)."""


class AuthenticationAppError(AppError):
    """Unknown API key, missing key, or insufficient role."""


class NotFoundAppError(AppError):
    """Requested record does not exist."""


@dataclass
class RateLimitExceededError(AppError):
    """Caller has used up the quota of its policy.

    Attributes:
        retry_after: Seconds until the caller's window frees a slot.
        headers: Quota headers to send with the 429 response.
    """

    retry_after: int = 0
    headers: dict[str, str] | None = None


class StoreUnavailableError(AppError):
    """Shared store backend could not be reached.

    Recovered internally by the fallback store, the fail-open limiter and the
    cache; reaching a handler means a caller skipped that recovery.
    """
