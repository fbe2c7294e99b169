"""Import run API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jobimporter.models.base import get_db
from jobimporter.models.import_run import ImportRun, RUN_STATUSES
from jobimporter.models.job_record import JobRecord
from jobimporter.schemas.import_run import ImportRunRead, ImportRunSummary, ImportStats

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("", response_model=list[ImportRunSummary])
async def list_runs(
    db: AsyncSession = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    source_url: str | None = Query(None, description="Filter by feed URL"),
    status: str | None = Query(None, description=f"Filter by status ({', '.join(RUN_STATUSES)})"),
):
    """List recent import runs, newest first."""
    query = select(ImportRun)

    if source_url:
        query = query.where(ImportRun.source_url == source_url)
    if status:
        query = query.where(ImportRun.status == status)

    query = query.order_by(ImportRun.started_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/stats", response_model=ImportStats)
async def get_import_stats(db: AsyncSession = Depends(get_db)):
    """Aggregate run and catalog counts."""
    status_result = await db.execute(
        select(ImportRun.status, func.count(ImportRun.id).label("count")).group_by(ImportRun.status)
    )
    runs_by_status = {row.status: row.count for row in status_result}

    totals = (await db.execute(
        select(
            func.coalesce(func.sum(ImportRun.new_jobs), 0),
            func.coalesce(func.sum(ImportRun.updated_jobs), 0),
            func.coalesce(func.sum(ImportRun.failed_jobs_count), 0),
            func.max(ImportRun.started_at),
        )
    )).one()

    source_result = await db.execute(
        select(JobRecord.source, func.count(JobRecord.id).label("count"))
        .group_by(JobRecord.source)
        .order_by(func.count(JobRecord.id).desc())
    )
    jobs_by_source = {row.source: row.count for row in source_result}

    return ImportStats(
        total_runs=sum(runs_by_status.values()),
        runs_by_status=runs_by_status,
        total_jobs=sum(jobs_by_source.values()),
        jobs_by_source=jobs_by_source,
        total_new_jobs=totals[0],
        total_updated_jobs=totals[1],
        total_failed_jobs=totals[2],
        last_run_at=totals[3],
    )


@router.get("/{run_id}", response_model=ImportRunRead)
async def get_run(
    run_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a single import run with its failed items."""
    query = (
        select(ImportRun)
        .options(selectinload(ImportRun.failed_jobs))
        .where(ImportRun.id == run_id)
    )
    result = await db.execute(query)
    run = result.scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    return run
