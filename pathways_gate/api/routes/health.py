from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check reporting whether the counter/cache store answers.

    A degraded store does not make the service unready: admission control
    fails open and caching falls back, so this only reports the state.
    """

    store = request.app.state.store
    reachable = await store.ping()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok" if reachable else "degraded",
            "store": {"backend": store.backend, "reachable": reachable},
        },
    )
