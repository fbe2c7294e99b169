"""Job record API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jobimporter.models.base import get_db
from jobimporter.models.job_record import JobRecord
from jobimporter.schemas.job_record import JobRecordRead, JobRecordSummary
from jobimporter.services.store import jobs_query

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=list[JobRecordSummary])
async def list_jobs(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    source: str | None = Query(None, description="Filter by feed URL"),
    company: str | None = Query(None, description="Filter by company (substring)"),
    location: str | None = Query(None, description="Filter by location (substring)"),
    category: str | None = Query(None, description="Filter by category"),
):
    """List imported jobs with filters."""
    query = jobs_query(
        source=source,
        company=company,
        location=location,
        category=category,
        skip=skip,
        limit=limit,
    )
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{job_id}", response_model=JobRecordRead)
async def get_job(
    job_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single job record, including its raw feed payload."""
    job = await db.get(JobRecord, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
