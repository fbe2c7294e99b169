"""Pydantic schemas for JobRecord model."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class JobRecordSummary(BaseModel):
    """Minimal job info for list views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    source: str
    external_job_id: str
    title: str
    url: str
    company: str | None = None
    location: str | None = None
    category: str | None = None
    job_type: str | None = None
    region: str | None = None
    posted_date: datetime | None = None


class JobRecordRead(JobRecordSummary):
    """Full job record output."""

    description: str | None = None
    raw_payload: dict[str, Any] | None = None
    imported_at: datetime
    last_updated_at: datetime
