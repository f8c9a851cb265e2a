"""In-process job board.

Stands in for the ORM-backed repository: enough to serve listings, lookups
and postings through the cached/rate-limited HTTP surface.
"""

from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime, timezone

from pathways_gate.core.errors import NotFoundAppError
from pathways_gate.schemas.jobs import Job, JobCreate

logger = logging.getLogger(__name__)


class JobBoard:
    """Thread-safe list of published jobs, newest first."""

    def __init__(self, jobs: list[Job] | None = None) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[int, Job] = {job.id: job for job in jobs or []}
        self._ids = itertools.count(max(self._jobs, default=0) + 1)

    def list(self, *, q: str | None = None, location: str | None = None) -> list[Job]:
        """Return jobs matching a free-text query and/or location, newest first."""

        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: (j.created_at, j.id), reverse=True)

        if q:
            needle = q.lower()
            jobs = [
                j
                for j in jobs
                if needle in j.title.lower()
                or needle in j.description.lower()
                or any(needle == tag.lower() for tag in j.tags)
            ]
        if location:
            jobs = [j for j in jobs if location.lower() in j.location.lower()]
        return jobs

    def get(self, job_id: int) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundAppError(code="job_not_found", message=f"Job {job_id} does not exist")
        return job

    def create(self, payload: JobCreate, *, posted_by: str) -> Job:
        with self._lock:
            job = Job(
                id=next(self._ids),
                posted_by=posted_by,
                created_at=datetime.now(timezone.utc),
                **payload.model_dump(),
            )
            self._jobs[job.id] = job
        logger.info("jobs.created", extra={"job_id": job.id, "posted_by": posted_by})
        return job
