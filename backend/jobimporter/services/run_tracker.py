"""Import run lifecycle and counters.

    pending -> processing -> completed
        \\            \\
         `-> failed   `-> failed (stale, see reconcile_stale_runs)

Every mutation is a single conditional or incrementing UPDATE committed on its
own, so concurrent workers can report outcomes for the same run without any
in-process locking. finalize_if_complete() is safe to call from every worker
after every batch: the WHERE clause lets exactly one caller close the run.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from jobimporter.models.import_run import ImportRun, ImportRunFailure

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 2000

_COUNTERS = {
    "created": ImportRun.new_jobs,
    "updated": ImportRun.updated_jobs,
    "failed": ImportRun.failed_jobs_count,
}


@dataclass(frozen=True)
class ItemOutcome:
    kind: str  # created, updated, failed
    external_job_id: str | None = None
    reason: str | None = None

    @classmethod
    def created(cls, external_job_id: str) -> "ItemOutcome":
        return cls("created", external_job_id)

    @classmethod
    def updated(cls, external_job_id: str) -> "ItemOutcome":
        return cls("updated", external_job_id)

    @classmethod
    def failed(cls, identifier: str, reason: str) -> "ItemOutcome":
        return cls("failed", identifier, reason)


def _as_uuid(run_id) -> uuid.UUID:
    return run_id if isinstance(run_id, uuid.UUID) else uuid.UUID(str(run_id))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _recorded_outcomes():
    return ImportRun.new_jobs + ImportRun.updated_jobs + ImportRun.failed_jobs_count


def _update(run_id):
    return (
        update(ImportRun)
        .where(ImportRun.id == _as_uuid(run_id))
        .execution_options(synchronize_session=False)
    )


def get_run(db: Session, run_id) -> ImportRun | None:
    return db.get(ImportRun, _as_uuid(run_id), populate_existing=True)


def create_run(db: Session, source_url: str) -> ImportRun:
    """Allocate a run in 'pending' before any network I/O for the source."""
    run = ImportRun(
        id=uuid.uuid4(),
        source_url=source_url,
        started_at=_now(),
        status="pending",
        new_jobs=0,
        updated_jobs=0,
        failed_jobs_count=0,
    )
    db.add(run)
    db.commit()
    return run


def record_fetched(db: Session, run_id, total: int) -> None:
    """Set total_fetched. Only the first call has any effect."""
    db.execute(
        _update(run_id)
        .where(ImportRun.total_fetched.is_(None))
        .values(total_fetched=total)
    )
    db.commit()


def mark_processing(db: Session, run_id) -> bool:
    """pending -> processing, once batches are dispatched.

    A no-op when workers already finalized the run.
    """
    result = db.execute(
        _update(run_id)
        .where(ImportRun.status == "pending", ImportRun.finished_at.is_(None))
        .values(status="processing")
    )
    db.commit()
    return result.rowcount == 1


def record_item_outcome(db: Session, run_id, outcome: ItemOutcome) -> None:
    """Atomically bump the matching counter; failures also append to failed_jobs."""
    counter = _COUNTERS.get(outcome.kind)
    if counter is None:
        raise ValueError(f"Unknown outcome kind: {outcome.kind}")

    db.execute(_update(run_id).values({counter: counter + 1}))
    if outcome.kind == "failed":
        db.add(ImportRunFailure(
            run_id=_as_uuid(run_id),
            external_job_id=(outcome.external_job_id or "")[:1000] or None,
            reason=(outcome.reason or "unknown error")[:MAX_REASON_LENGTH],
            timestamp=_now(),
        ))
    db.commit()


def finalize_if_complete(db: Session, run_id) -> bool:
    """Close the run once every fetched item has an outcome.

    Returns True only for the one caller whose UPDATE finalized the run.
    """
    result = db.execute(
        _update(run_id)
        .where(
            ImportRun.finished_at.is_(None),
            ImportRun.total_fetched.is_not(None),
            _recorded_outcomes() >= ImportRun.total_fetched,
        )
        .values(status="completed", finished_at=_now())
    )
    db.commit()
    finalized = result.rowcount == 1
    if finalized:
        logger.info(f"Import run {run_id} completed")
    return finalized


def fail_run(db: Session, run_id, error: str) -> bool:
    """Short-circuit a run to 'failed' (fetch, parse, dispatch or staleness)."""
    result = db.execute(
        _update(run_id)
        .where(ImportRun.finished_at.is_(None))
        .values(status="failed", error=error[:MAX_REASON_LENGTH], finished_at=_now())
    )
    db.commit()
    return result.rowcount == 1


def find_stale_runs(db: Session, max_age: timedelta, now: datetime | None = None) -> list[ImportRun]:
    """Runs still unfinished longer than max_age after they started."""
    cutoff = (now or _now()) - max_age
    query = (
        select(ImportRun)
        .where(ImportRun.finished_at.is_(None), ImportRun.started_at < cutoff)
        .order_by(ImportRun.started_at)
    )
    return list(db.execute(query).scalars().all())


def reconcile_stale_runs(db: Session, max_age: timedelta, now: datetime | None = None) -> list[dict]:
    """Fail and report runs abandoned mid-flight (e.g. a worker restart).

    Returns one report per run that this call moved to 'failed'.
    """
    reports = []
    for run in find_stale_runs(db, max_age, now=now):
        previous_status = run.status
        recorded = run.new_jobs + run.updated_jobs + run.failed_jobs_count
        error = (
            f"Stale run: no completion within {int(max_age.total_seconds() // 60)} minutes; "
            f"{recorded} of {run.total_fetched if run.total_fetched is not None else 'unknown'} "
            f"item outcomes recorded (status was {previous_status})"
        )
        if fail_run(db, run.id, error):
            report = {
                "run_id": str(run.id),
                "source_url": run.source_url,
                "previous_status": previous_status,
                "total_fetched": run.total_fetched,
                "outcomes_recorded": recorded,
                "error": error,
            }
            logger.warning(f"Reconciled stale import run: {json.dumps(report)}")
            reports.append(report)
    return reports
