"""OpenAPI metadata and customization utilities.

Adds the ``X-API-Key`` security scheme, documents the admission-control
headers, and keeps health endpoints marked as unauthenticated.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_TAGS = [
    {"name": "Jobs", "description": "Public job listings (cached reads)."},
    {"name": "Admin", "description": "Rate limit, blocklist and cache administration."},
    {"name": "Health", "description": "Liveness and readiness checks."},
]

_RATE_LIMIT_HEADERS = {
    "X-RateLimit-Limit": "Requests allowed per window for the caller's policy.",
    "X-RateLimit-Remaining": "Requests left in the current window.",
    "X-RateLimit-Reset": "UNIX epoch seconds when the oldest counted request leaves the window.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add security and quota docs.

    - API key auth is optional for every operation except ``/admin`` ones
    - Every non-health operation documents the 429 response
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = original_openapi()

        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {}).setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Optional; identifies the caller for per-user quotas.",
            },
        )

        tags = schema.setdefault("tags", [])
        existing = {t.get("name") for t in tags}
        tags.extend(t for t in _TAGS if t["name"] not in existing)

        for path, methods in schema.get("paths", {}).items():
            for operation in methods.values():
                if not isinstance(operation, dict):
                    continue
                if path.endswith(("/health", "/ready")):
                    operation["security"] = []
                    continue
                operation["security"] = [{"ApiKeyAuth": []}] if "/admin/" in path else [{}, {"ApiKeyAuth": []}]
                operation.setdefault("responses", {}).setdefault(
                    "429",
                    {
                        "description": "Rate limit exceeded; retry after `retryAfter` seconds.",
                        "headers": {
                            "Retry-After": {"schema": {"type": "integer"}},
                            **{
                                name: {"description": text, "schema": {"type": "integer"}}
                                for name, text in _RATE_LIMIT_HEADERS.items()
                            },
                        },
                    },
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
