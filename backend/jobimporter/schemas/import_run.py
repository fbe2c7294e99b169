"""Pydantic schemas for ImportRun model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class FailedJobRead(BaseModel):
    """One failed item of a run."""

    model_config = ConfigDict(from_attributes=True)

    external_job_id: str | None = None
    reason: str
    timestamp: datetime


class ImportRunSummary(BaseModel):
    """Run info for list views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source_url: str
    started_at: datetime
    finished_at: datetime | None = None
    status: str
    total_fetched: int | None = None
    total_imported: int = 0
    new_jobs: int = 0
    updated_jobs: int = 0
    failed_jobs_count: int = 0
    error: str | None = None


class ImportRunRead(ImportRunSummary):
    """Full run output including per-item failures."""

    failed_jobs: list[FailedJobRead] = []


class ImportStats(BaseModel):
    """Aggregate import statistics."""

    total_runs: int
    runs_by_status: dict[str, int]
    total_jobs: int
    jobs_by_source: dict[str, int]
    total_new_jobs: int
    total_updated_jobs: int
    total_failed_jobs: int
    last_run_at: datetime | None = None
