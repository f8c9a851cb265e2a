"""Unit tests for API key identity resolution."""

import pytest
from fastapi.testclient import TestClient

from pathways_gate.core.auth import (
    Identity,
    hash_api_key,
    parse_api_keys,
    require_admin,
    require_identity,
    resolve_identity,
)
from pathways_gate.core.errors import AuthenticationAppError

from conftest import ADMIN_HEADERS, MEMBER_HEADERS


class TestParseAPIKeys:
    """Test API key assignment parsing."""

    def test_parse_full_assignment(self) -> None:
        """Test key with user, role and tier."""
        result = parse_api_keys("k1=u1:admin:premium")
        assert result == {"k1": Identity(user_id="u1", role="admin", tier="premium")}

    def test_parse_defaults_role_and_tier(self) -> None:
        """Test that role and tier fall back to member/standard."""
        result = parse_api_keys("k1=u1,k2=u2:admin")
        assert result["k1"] == Identity(user_id="u1", role="member", tier="standard")
        assert result["k2"] == Identity(user_id="u2", role="admin", tier="standard")

    def test_parse_empty_role_keeps_tier(self) -> None:
        """Test 'user::tier' form."""
        result = parse_api_keys("k1=u1::premium")
        assert result["k1"] == Identity(user_id="u1", role="member", tier="premium")

    def test_parse_trims_whitespace(self) -> None:
        """Test that whitespace around entries and fields is ignored."""
        result = parse_api_keys(" k1 = u1 : admin ,  k2=u2 ")
        assert set(result) == {"k1", "k2"}
        assert result["k1"].role == "admin"

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs(self, raw) -> None:
        """Test that missing or blank configuration yields no keys."""
        assert parse_api_keys(raw) == {}

    def test_parse_skips_malformed_entries(self) -> None:
        """Test that entries without '=user' are dropped."""
        result = parse_api_keys("just-a-key,=u1,k2=,k3=u3")
        assert list(result) == ["k3"]


class TestResolveIdentity:
    """Test core key lookup logic."""

    keys = {"valid": Identity(user_id="u1")}

    def test_no_key_is_anonymous(self) -> None:
        assert resolve_identity(None, self.keys) is None
        assert resolve_identity("", self.keys) is None

    def test_known_key_resolves(self) -> None:
        assert resolve_identity("valid", self.keys) == Identity(user_id="u1")

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            resolve_identity("wrong", self.keys)

        assert exc_info.value.code == "invalid_api_key"
        assert "wrong" not in str(exc_info.value.details)

    def test_hash_is_stable_and_short(self) -> None:
        assert hash_api_key("abc") == hash_api_key("abc")
        assert len(hash_api_key("abc")) == 16
        assert hash_api_key("abc") != "abc"


class TestDependencies:
    """Test identity-gated FastAPI dependencies."""

    def test_require_identity_rejects_anonymous(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            require_identity(None)
        assert exc_info.value.code == "authentication_required"

    def test_require_admin_rejects_member(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            require_admin(Identity(user_id="u1"))
        assert exc_info.value.code == "admin_required"

    def test_require_admin_accepts_admin(self) -> None:
        admin = Identity(user_id="a1", role="admin")
        assert require_admin(admin) is admin


class TestIdentityMiddleware:
    """Test key handling on real requests."""

    def test_invalid_key_returns_403(self, client: TestClient) -> None:
        response = client.get("/api/jobs", headers={"X-API-Key": "nope"})

        assert response.status_code == 403
        body = response.json()
        assert body["error"]["code"] == "invalid_api_key"
        assert body["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_anonymous_request_passes(self, client: TestClient) -> None:
        assert client.get("/api/jobs").status_code == 200

    def test_posting_requires_a_key(self, client: TestClient) -> None:
        payload = {"title": "Ranger", "company": "Parks", "location": "Darwin"}

        anonymous = client.post("/api/jobs", json=payload)
        member = client.post("/api/jobs", json=payload, headers=MEMBER_HEADERS)

        assert anonymous.status_code == 403
        assert anonymous.json()["error"]["code"] == "authentication_required"
        assert member.status_code == 201
        assert member.json()["posted_by"] == "user-1"

    def test_admin_key_reaches_admin_routes(self, client: TestClient) -> None:
        assert client.get("/api/admin/cache/stats", headers=ADMIN_HEADERS).status_code == 200
        assert client.get("/api/admin/cache/stats", headers=MEMBER_HEADERS).status_code == 403
