from __future__ import annotations

from pathways_gate.api.routes.admin import router as admin_router
from pathways_gate.api.routes.health import router as health_router
from pathways_gate.api.routes.jobs import router as jobs_router

__all__ = ["admin_router", "health_router", "jobs_router"]
