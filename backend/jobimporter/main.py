"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import jobimporter.models  # noqa: F401 (registers every mapper)
from jobimporter.config import configure_logging, get_settings
from jobimporter.models.base import Base, get_async_engine, get_db
from jobimporter.models.import_run import ImportRun
from jobimporter.queue.base import WorkQueue
from jobimporter.schemas.import_run import ImportRunSummary
from jobimporter.api.v1.queue import get_work_queue
from jobimporter.api.v1 import router as api_v1_router

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging(settings)
    logger.info("Starting %s...", settings.app_name)
    engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified")
    yield
    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Job feed import pipeline: runs, failures and the imported catalog",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/health/detailed")
async def detailed_health_check(
    db: AsyncSession = Depends(get_db),
    queue: WorkQueue = Depends(get_work_queue),
):
    """Database, work queue and latest import run."""
    checks = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = {"ok": True}
    except SQLAlchemyError as e:
        await db.rollback()
        checks["database"] = {"ok": False, "message": str(e)}

    # Broker and workers are both read through the queue counts
    try:
        checks["queue"] = {"ok": True, "counts": await run_in_threadpool(queue.counts)}
    except Exception as e:
        checks["queue"] = {"ok": False, "message": str(e)}

    if checks["database"]["ok"]:
        latest = (await db.execute(
            select(ImportRun).order_by(ImportRun.started_at.desc()).limit(1)
        )).scalar_one_or_none()
        checks["latest_run"] = {
            "ok": latest is None or latest.status != "failed",
            "run": ImportRunSummary.model_validate(latest).model_dump(mode="json") if latest else None,
        }

    all_ok = all(check["ok"] for check in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
