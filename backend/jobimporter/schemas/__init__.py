"""Pydantic schemas package."""

from pydantic import BaseModel

from jobimporter.schemas.job_record import (
    JobRecordRead,
    JobRecordSummary,
)
from jobimporter.schemas.import_run import (
    FailedJobRead,
    ImportRunRead,
    ImportRunSummary,
    ImportStats,
)


class QueueHealth(BaseModel):
    """Work queue unit counts."""

    waiting: int
    active: int
    completed: int
    failed: int


__all__ = [
    # JobRecord
    "JobRecordRead",
    "JobRecordSummary",
    # ImportRun
    "FailedJobRead",
    "ImportRunRead",
    "ImportRunSummary",
    "ImportStats",
    # Queue
    "QueueHealth",
]
