"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any application import so the global
settings object never picks up a developer's .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_STORE", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault(
    "APP_API_KEYS",
    "admin-key=admin-1:admin,member-key=user-1,premium-key=user-2:member:premium",
)

from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pathways_gate.adapters.store.in_memory import InMemoryStore
from pathways_gate.core.app_factory import create_app
from pathways_gate.core.config import AppSettings, CacheSettings, RateLimitSettings, Settings

ADMIN_HEADERS = {"X-API-Key": "admin-key"}
MEMBER_HEADERS = {"X-API-Key": "member-key"}
PREMIUM_HEADERS = {"X-API-Key": "premium-key"}


class FakeClock:
    """Deterministic clock used to test windows and expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(max_entries=100, clock=clock)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(
        *,
        rate_limit: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
    ) -> Settings:
        return Settings(
            app=AppSettings(api_keys=os.environ["APP_API_KEYS"]),
            rate_limit=RateLimitSettings(**(rate_limit or {})),
            cache=CacheSettings(**(cache or {})),
        )

    return _make


@pytest.fixture
def make_app(
    make_settings: Callable[..., Settings],
    store: InMemoryStore,
    clock: FakeClock,
) -> Callable[..., FastAPI]:
    """Build an app sharing the test clock and in-memory store."""

    def _make(**overrides: Any) -> FastAPI:
        return create_app(make_settings(**overrides), store=store, clock=clock, configure_logs=False)

    return _make


@pytest.fixture
def client(make_app: Callable[..., FastAPI]) -> TestClient:
    return TestClient(make_app())
