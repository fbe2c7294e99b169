"""Work queue health endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from jobimporter.queue.base import WorkQueue
from jobimporter.queue.celery_queue import CeleryWorkQueue
from jobimporter.schemas import QueueHealth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


def get_work_queue() -> WorkQueue:
    return CeleryWorkQueue()


@router.get("/health", response_model=QueueHealth)
def queue_health(queue: WorkQueue = Depends(get_work_queue)):
    """Waiting/active/completed/failed batch unit counts."""
    try:
        return QueueHealth(**queue.counts())
    except Exception as e:
        logger.error(f"Queue health check failed: {e}")
        raise HTTPException(status_code=503, detail=f"Queue unavailable: {e}")
