"""API v1 router aggregation."""

from fastapi import APIRouter

from jobimporter.api.v1.jobs import router as jobs_router
from jobimporter.api.v1.runs import router as runs_router
from jobimporter.api.v1.queue import router as queue_router

router = APIRouter(prefix="/api/v1")

router.include_router(jobs_router)
router.include_router(runs_router)
router.include_router(queue_router)
