from __future__ import annotations

"""Application factory for the FastAPI app.

Builds the store, limiter, policy table, response cache and blocklist from an
explicit ``Settings`` object and keeps them on ``app.state``, so tests and
workers can run with independent configurations.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI

from pathways_gate.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from pathways_gate.adapters.store.base import AbstractStore
from pathways_gate.adapters.store.factory import create_store
from pathways_gate.api.routes import admin_router, health_router, jobs_router
from pathways_gate.core.auth import identity_middleware, parse_api_keys
from pathways_gate.core.config import Settings, settings as default_settings
from pathways_gate.core.exception_handlers import setup_exception_handlers
from pathways_gate.core.logging import configure_logging
from pathways_gate.core.middleware import request_id_middleware
from pathways_gate.core.openapi import apply_openapi_customizations
from pathways_gate.core.policies import PolicyTable
from pathways_gate.core.rate_limit import admission_middleware
from pathways_gate.core.response_cache import response_cache_middleware
from pathways_gate.services.blocklist import Blocklist
from pathways_gate.services.job_board import JobBoard
from pathways_gate.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: AbstractStore = app.state.store
    if not await store.ping():
        logger.warning("store.unreachable_at_startup", extra={"backend": store.backend})
    try:
        yield
    finally:
        await store.close()


def create_app(
    config: Settings | None = None,
    *,
    store: AbstractStore | None = None,
    clock: Callable[[], float] = time.time,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to build from; defaults to the environment settings.
        store: Pre-built store (tests); defaults to the configured backend.
        clock: Time source for the limiter.
        configure_logs: Reconfigure the root logger from ``config.log``.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = config or default_settings
    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    app = FastAPI(
        title="Pathways Gate",
        description=(
            "Admission control and response caching for the Ngurra Pathways API: "
            "sliding-window rate limits per caller and endpoint class, short-TTL "
            "caching of public reads, and administration of quotas, blocks and cache."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.store = store or create_store(cfg)
    app.state.api_keys = parse_api_keys(cfg.app.api_keys)
    app.state.policies = PolicyTable.from_settings(cfg.rate_limit)
    app.state.rate_limiter = SlidingWindowRateLimiter(app.state.store, clock=clock)
    app.state.blocklist = Blocklist(app.state.store, clock=clock)
    app.state.response_cache = ResponseCache(
        app.state.store,
        cfg.cache.rules,
        api_prefix=cfg.app.api_prefix,
        enabled=cfg.cache.enabled,
    )
    app.state.job_board = JobBoard()

    # Middleware: the last registered runs first, so request ids wrap
    # identity, identity wraps admission, admission wraps the cache.
    app.middleware("http")(response_cache_middleware)
    app.middleware("http")(admission_middleware)
    app.middleware("http")(identity_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(jobs_router, prefix=cfg.app.api_prefix)
    app.include_router(admin_router, prefix=cfg.app.api_prefix)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "store": app.state.store.backend,
            "rate_limit_enabled": cfg.rate_limit.enabled,
            "cache_enabled": cfg.cache.enabled,
            "api_key_count": len(app.state.api_keys),
        },
    )
    return app
