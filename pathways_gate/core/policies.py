"""Rate limit policy table and request classification.

Every request resolves to exactly one policy. Endpoint classes (auth, AI,
uploads, search) take precedence over identity tiers; anything unrecognised
falls back to the anonymous policy, the most conservative tier.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping

from pathways_gate.core.auth import Identity
from pathways_gate.core.config import PolicyOverride, RateLimitSettings

logger = logging.getLogger(__name__)


class PolicyName(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    PREMIUM = "premium"
    ADMIN = "admin"
    SENSITIVE = "sensitive"
    AI = "ai"
    UPLOAD = "upload"
    SEARCH = "search"


@dataclass(frozen=True)
class Policy:
    """Admission policy for one request class.

    Attributes:
        name: Policy identifier.
        window_seconds: Length of the sliding window.
        max_requests: Requests admitted per window.
        message: Client-facing message sent with 429 responses.
        key_prefix: Namespace separating this policy's counters from the others.
    """

    name: PolicyName
    window_seconds: int
    max_requests: int
    message: str
    key_prefix: str


_QUARTER_HOUR = 15 * 60
_DEFAULT_MESSAGE = "Rate limit exceeded. Please try again later."

DEFAULT_POLICIES: dict[PolicyName, Policy] = {
    PolicyName.ANONYMOUS: Policy(PolicyName.ANONYMOUS, _QUARTER_HOUR, 100, _DEFAULT_MESSAGE, "anon"),
    PolicyName.AUTHENTICATED: Policy(PolicyName.AUTHENTICATED, _QUARTER_HOUR, 500, _DEFAULT_MESSAGE, "auth"),
    PolicyName.PREMIUM: Policy(PolicyName.PREMIUM, _QUARTER_HOUR, 2000, _DEFAULT_MESSAGE, "premium"),
    PolicyName.ADMIN: Policy(PolicyName.ADMIN, _QUARTER_HOUR, 10000, _DEFAULT_MESSAGE, "admin"),
    PolicyName.SENSITIVE: Policy(
        PolicyName.SENSITIVE,
        _QUARTER_HOUR,
        5,
        "Too many authentication attempts. Please try again later.",
        "sensitive",
    ),
    PolicyName.AI: Policy(
        PolicyName.AI,
        60,
        10,
        "AI request limit reached. Please wait a minute before trying again.",
        "ai",
    ),
    PolicyName.UPLOAD: Policy(
        PolicyName.UPLOAD,
        60 * 60,
        50,
        "Upload limit reached. Please try again later.",
        "upload",
    ),
    PolicyName.SEARCH: Policy(
        PolicyName.SEARCH,
        60,
        30,
        "Too many searches. Please slow down.",
        "search",
    ),
}


class PolicyTable:
    """Immutable mapping of policy names to policies."""

    def __init__(self, policies: Mapping[PolicyName, Policy]) -> None:
        missing = set(PolicyName) - set(policies)
        if missing:
            raise ValueError(f"missing policies: {sorted(p.value for p in missing)}")
        self._policies = dict(policies)

    def __getitem__(self, name: PolicyName) -> Policy:
        return self._policies[name]

    @classmethod
    def from_settings(cls, config: RateLimitSettings) -> "PolicyTable":
        """Build the table from defaults, overrides and the global multiplier.

        Args:
            config: Rate limit settings (read once at start-up).

        Returns:
            PolicyTable with every policy resolved.
        """
        return cls(
            build_policies(
                overrides=config.overrides,
                multiplier=config.multiplier,
            )
        )


def build_policies(
    *,
    overrides: Mapping[str, PolicyOverride] | None = None,
    multiplier: float = 1.0,
    base: Mapping[PolicyName, Policy] = DEFAULT_POLICIES,
) -> dict[PolicyName, Policy]:
    """Apply per-policy overrides, then the multiplier, to the base table."""

    policies = dict(base)
    for raw_name, override in (overrides or {}).items():
        try:
            name = PolicyName(raw_name)
        except ValueError:
            logger.warning("rate_limit.unknown_override", extra={"policy": raw_name})
            continue
        changes = override.model_dump(exclude_none=True)
        policies[name] = replace(policies[name], **changes)

    if multiplier != 1.0:
        policies = {
            name: replace(policy, max_requests=max(1, math.floor(policy.max_requests * multiplier)))
            for name, policy in policies.items()
        }
    return policies


def strip_api_prefix(path: str, api_prefix: str = "/api") -> str:
    """Return the route path relative to the API prefix (and optional /v1)."""

    prefix = api_prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        path = path[len(prefix):] or "/"
    if path == "/v1" or path.startswith("/v1/"):
        path = path[3:] or "/"
    return path


def _under(path: str, segment: str) -> bool:
    return path == segment or path.startswith(segment + "/")


def classify(
    method: str,
    path: str,
    identity: Identity | None,
    *,
    api_prefix: str = "/api",
) -> PolicyName:
    """Pick the policy for a request.

    Args:
        method: HTTP method.
        path: Raw request path.
        identity: Authenticated caller, or None for anonymous requests.
        api_prefix: Mount prefix stripped before matching.

    Returns:
        PolicyName: Always resolves; anonymous when nothing else matches.
    """

    route = strip_api_prefix(path or "/", api_prefix)
    method = (method or "").upper()

    if _under(route, "/auth"):
        return PolicyName.SENSITIVE
    if method == "POST" and _under(route, "/ai"):
        return PolicyName.AI
    if method == "POST" and _under(route, "/uploads"):
        return PolicyName.UPLOAD
    if method == "GET" and _under(route, "/search"):
        return PolicyName.SEARCH

    if identity is None:
        return PolicyName.ANONYMOUS
    if identity.role == "admin":
        return PolicyName.ADMIN
    if identity.tier == "premium":
        return PolicyName.PREMIUM
    return PolicyName.AUTHENTICATED
