"""FastAPI dependencies exposing the components built by the app factory."""

from __future__ import annotations

from fastapi import Request

from pathways_gate.adapters.rate_limit.base import AbstractRateLimiter
from pathways_gate.core.policies import PolicyTable
from pathways_gate.services.blocklist import Blocklist
from pathways_gate.services.job_board import JobBoard
from pathways_gate.services.response_cache import ResponseCache


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    return request.app.state.rate_limiter


def get_policies(request: Request) -> PolicyTable:
    return request.app.state.policies


def get_blocklist(request: Request) -> Blocklist:
    return request.app.state.blocklist


def get_job_board(request: Request) -> JobBoard:
    return request.app.state.job_board
