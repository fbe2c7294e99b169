"""Database models package."""

from jobimporter.models.base import Base
from jobimporter.models.job_record import JobRecord
from jobimporter.models.import_run import ImportRun, ImportRunFailure

__all__ = ["Base", "JobRecord", "ImportRun", "ImportRunFailure"]
