"""Tests for the administrative endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_HEADERS, MEMBER_HEADERS

BLOCKED_IP = "203.0.113.9"


@pytest.mark.parametrize(
    ("headers", "code"),
    [({}, "authentication_required"), (MEMBER_HEADERS, "admin_required")],
)
def test_non_admins_are_rejected(client: TestClient, headers: dict, code: str) -> None:
    response = client.get("/api/admin/cache/stats", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"]["code"] == code


def test_usage_reports_without_consuming(client: TestClient) -> None:
    client.get("/api/jobs")
    client.get("/api/jobs")

    for _ in range(2):
        usage = client.get(
            "/api/admin/rate-limits/usage",
            params={"key": "ip:testclient", "policy": "anonymous"},
            headers=ADMIN_HEADERS,
        )
        assert usage.status_code == 200
        body = usage.json()
        assert body["limit"] == 100
        assert body["remaining"] == 98
        assert body["window_seconds"] == 900


def test_usage_rejects_unknown_policy(client: TestClient) -> None:
    response = client.get(
        "/api/admin/rate-limits/usage",
        params={"key": "ip:testclient", "policy": "gold"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422


def test_reset_restores_quota(make_app) -> None:
    client = TestClient(make_app(rate_limit={"overrides": {"anonymous": {"max_requests": 1}}}))
    client.get("/api/jobs")
    assert client.get("/api/jobs").status_code == 429

    reset = client.post(
        "/api/admin/rate-limits/reset",
        json={"key": "ip:testclient", "policy": "anonymous"},
        headers=ADMIN_HEADERS,
    )

    assert reset.json() == {"key": "ip:testclient", "policy": "anonymous", "reset": True}
    assert client.get("/api/jobs").status_code == 200


def test_block_and_unblock(client: TestClient, clock) -> None:
    blocked_headers = {"X-Forwarded-For": BLOCKED_IP}

    block = client.post(
        "/api/admin/blocks",
        json={"ip": BLOCKED_IP, "duration_seconds": 3600},
        headers=ADMIN_HEADERS,
    )
    assert block.status_code == 200
    assert block.json() == {"ip": BLOCKED_IP, "blocked_until": clock.current + 3600}

    denied = client.get("/api/jobs", headers=blocked_headers)
    assert denied.status_code == 403
    assert denied.json()["error"] == "Forbidden"
    assert client.get("/api/jobs").status_code == 200

    unblock = client.delete(f"/api/admin/blocks/{BLOCKED_IP}", headers=ADMIN_HEADERS)
    assert unblock.json() == {"ip": BLOCKED_IP, "unblocked": True}
    assert client.get("/api/jobs", headers=blocked_headers).status_code == 200


def test_block_lapses(client: TestClient, clock) -> None:
    client.post("/api/admin/blocks", json={"ip": BLOCKED_IP, "duration_seconds": 60}, headers=ADMIN_HEADERS)
    assert client.get("/api/jobs", headers={"X-Forwarded-For": BLOCKED_IP}).status_code == 403

    clock.advance(60)
    assert client.get("/api/jobs", headers={"X-Forwarded-For": BLOCKED_IP}).status_code == 200


def test_block_validation(client: TestClient) -> None:
    response = client.post(
        "/api/admin/blocks",
        json={"ip": BLOCKED_IP, "duration_seconds": 0},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 422


def test_cache_invalidate_and_stats(client: TestClient) -> None:
    client.get("/api/jobs")
    client.get("/api/jobs")

    stats = client.get("/api/admin/cache/stats", headers=ADMIN_HEADERS).json()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert "jobs" in stats["resources"]
    assert stats["store"]["entries"] == 1

    removed = client.post("/api/admin/cache/invalidate", json={"pattern": "jobs"}, headers=ADMIN_HEADERS)
    assert removed.json() == {"pattern": "jobs", "removed": 1}
    assert client.get("/api/jobs").headers["X-Cache"] == "MISS"


def test_readiness_reports_store(client: TestClient) -> None:
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store": {"backend": "memory", "reachable": True}}


def test_openapi_documents_api_key_and_429(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    assert "ApiKeyAuth" in schema["components"]["securitySchemes"]
    jobs = schema["paths"]["/api/jobs"]["get"]
    assert "429" in jobs["responses"]
    assert schema["paths"]["/api/admin/cache/stats"]["get"]["security"] == [{"ApiKeyAuth": []}]
    assert schema["paths"]["/health"]["get"]["security"] == []
