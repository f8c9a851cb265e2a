"""API key identity resolution.

This module stands in for the platform's authentication layer: it maps an
``X-API-Key`` header to an ``Identity`` (user id, role, subscription tier)
and attaches it to ``request.state.identity`` for the admission and caching
layers.

Keys are configured as a comma-separated list of ``key=user_id:role:tier``
assignments; role defaults to ``member`` and tier to ``standard``.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.responses import JSONResponse

from pathways_gate.core.errors import AuthenticationAppError
from pathways_gate.core.exception_handlers import error_content

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: str
    role: str = "member"
    tier: str = "standard"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def parse_api_keys(keys_string: str | None) -> dict[str, Identity]:
    """Parse API key assignments into a lookup table.

    Args:
        keys_string: Comma-separated ``key=user_id:role:tier`` entries, or None.

    Returns:
        Mapping of API key to Identity. Malformed entries are skipped.

    Examples:
        >>> parse_api_keys("k1=u1:admin,k2=u2")["k2"]
        Identity(user_id='u2', role='member', tier='standard')
        >>> parse_api_keys(None)
        {}
    """
    if not keys_string:
        return {}

    identities: dict[str, Identity] = {}
    for entry in keys_string.split(","):
        key, sep, spec = entry.strip().partition("=")
        key = key.strip()
        parts = [p.strip() for p in spec.split(":")] if sep else []
        if not key or not parts or not parts[0]:
            if entry.strip():
                logger.warning("auth.malformed_key_entry", extra={"entry_length": len(entry.strip())})
            continue
        identities[key] = Identity(
            user_id=parts[0],
            role=parts[1] if len(parts) > 1 and parts[1] else "member",
            tier=parts[2] if len(parts) > 2 and parts[2] else "standard",
        )
    return identities


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:16]


def resolve_identity(api_key: str | None, keys: dict[str, Identity]) -> Identity | None:
    """Look up the identity for an API key.

    Pure lookup logic without FastAPI dependencies for easy testing.

    Returns:
        Identity for a known key, None when no key was provided.

    Raises:
        AuthenticationAppError: If a key was provided but is not recognised.
    """
    if not api_key:
        return None

    identity = keys.get(api_key)
    if identity is None:
        logger.warning(
            "api_key_validation_failed",
            extra={"reason": "invalid_api_key", "api_key_hash": hash_api_key(api_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid API key",
            details={"hint": f"Omit {API_KEY_HEADER} for anonymous access"},
        )
    return identity


async def identity_middleware(request: Request, call_next):
    """HTTP middleware attaching the caller identity to the request.

    Requests without a key continue anonymously; requests with an unknown
    key are rejected with 403 before reaching admission control.
    """

    keys: dict[str, Identity] = request.app.state.api_keys
    try:
        request.state.identity = resolve_identity(request.headers.get(API_KEY_HEADER), keys)
    except AuthenticationAppError as exc:
        return JSONResponse(status_code=403, content=error_content(exc))
    return await call_next(request)


def get_identity(request: Request) -> Identity | None:
    """FastAPI dependency returning the identity attached by the middleware."""
    return getattr(request.state, "identity", None)


def require_identity(identity: Annotated[Identity | None, Depends(get_identity)]) -> Identity:
    """FastAPI dependency for endpoints that need an authenticated caller.

    Raises:
        AuthenticationAppError: 403 when the request is anonymous.
    """
    if identity is None:
        raise AuthenticationAppError(
            code="authentication_required",
            message=f"Missing API key. Provide {API_KEY_HEADER} header.",
        )
    return identity


def require_admin(identity: Annotated[Identity, Depends(require_identity)]) -> Identity:
    """FastAPI dependency restricting an endpoint to admin callers."""
    if not identity.is_admin:
        logger.warning("auth.admin_required", extra={"role": identity.role})
        raise AuthenticationAppError(
            code="admin_required",
            message="This endpoint requires an admin API key",
        )
    return identity
