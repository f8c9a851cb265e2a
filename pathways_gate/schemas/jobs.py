"""Pydantic schemas for the jobs listing."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class JobCreate(BaseModel):
    """Payload for publishing a job."""

    title: str = Field(..., min_length=3, max_length=200, description="Job title.")
    company: str = Field(..., min_length=1, max_length=200, description="Employer name.")
    location: str = Field(..., min_length=1, max_length=200, description="City, region or 'Remote'.")
    description: str = Field("", max_length=10000, description="Role description.")
    tags: List[str] = Field(default_factory=list, description="Free-form skill tags.")


class Job(JobCreate):
    """A published job."""

    id: int = Field(..., description="Job identifier.")
    posted_by: str = Field(..., description="User id of the poster.")
    created_at: datetime = Field(..., description="Publication time (UTC).")


class JobList(BaseModel):
    """Page of jobs."""

    items: List[Job] = Field(default_factory=list)
    total: int = Field(..., description="Number of jobs matching the filters.")
