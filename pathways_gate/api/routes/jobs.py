from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from pathways_gate.api.dependencies import get_job_board, get_response_cache
from pathways_gate.core.auth import Identity, require_identity
from pathways_gate.schemas.jobs import Job, JobCreate, JobList
from pathways_gate.services.job_board import JobBoard
from pathways_gate.services.response_cache import ResponseCache

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("", response_model=JobList)
def list_jobs(
    board: Annotated[JobBoard, Depends(get_job_board)],
    q: Annotated[str | None, Query(max_length=200, description="Free-text search")] = None,
    location: Annotated[str | None, Query(max_length=200)] = None,
) -> JobList:
    """List published jobs, newest first. Cached per query for anonymous callers."""

    jobs = board.list(q=q, location=location)
    return JobList(items=jobs, total=len(jobs))


@router.get("/{job_id}", response_model=Job)
def get_job(job_id: int, board: Annotated[JobBoard, Depends(get_job_board)]) -> Job:
    return board.get(job_id)


@router.post("", response_model=Job, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreate,
    identity: Annotated[Identity, Depends(require_identity)],
    board: Annotated[JobBoard, Depends(get_job_board)],
    cache: Annotated[ResponseCache, Depends(get_response_cache)],
) -> Job:
    """Publish a job and drop every cached jobs read."""

    job = board.create(payload, posted_by=identity.user_id)
    await cache.invalidate("jobs")
    return job
