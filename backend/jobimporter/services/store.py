"""Job record store: atomic upsert keyed by (source, external_job_id).

The upsert is one INSERT ... ON CONFLICT DO UPDATE statement, so racing
workers can never create two rows for the same key; the unique constraint on
job_records is the only dedup mechanism. write_count, returned by the same
statement, tells inserts (1) from replacements (> 1).
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobimporter.errors import StoreError
from jobimporter.models.job_record import JobRecord, MUTABLE_FIELDS
from jobimporter.services.normalizer import JobDraft

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_job(db: Session, draft: JobDraft, now: datetime | None = None) -> str:
    """Insert or replace a job record. Returns 'created' or 'updated'.

    Raises StoreError on any database failure; the session is rolled back.
    """
    if not draft.source or not draft.external_job_id:
        raise ValueError("draft needs source and external_job_id before it can be stored")

    dialect = db.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise StoreError(f"Upsert not supported on database dialect: {dialect}")

    now = now or datetime.now(timezone.utc)
    stmt = insert(JobRecord).values(
        id=uuid.uuid4(),
        source=draft.source,
        external_job_id=draft.external_job_id,
        imported_at=now,
        last_updated_at=now,
        write_count=1,
        **{name: getattr(draft, name) for name in MUTABLE_FIELDS},
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["source", "external_job_id"],
        set_={
            **{name: stmt.excluded[name] for name in MUTABLE_FIELDS},
            "last_updated_at": stmt.excluded.last_updated_at,
            "write_count": JobRecord.write_count + 1,
        },
    ).returning(JobRecord.write_count)

    try:
        write_count = db.execute(stmt).scalar_one()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Upsert failed for {draft.source} / {draft.external_job_id}: {e}") from e

    return "created" if write_count == 1 else "updated"


def jobs_query(
    source: str | None = None,
    company: str | None = None,
    location: str | None = None,
    category: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Select:
    """Filtered, paginated job listing, newest postings first."""
    query = select(JobRecord)
    if source:
        query = query.where(JobRecord.source == source)
    if company:
        query = query.where(JobRecord.company.ilike(f"%{company}%"))
    if location:
        query = query.where(JobRecord.location.ilike(f"%{location}%"))
    if category:
        query = query.where(JobRecord.category == category)
    return (
        query.order_by(JobRecord.posted_date.desc().nullslast(), JobRecord.last_updated_at.desc())
        .offset(skip)
        .limit(limit)
    )


def list_jobs(db: Session, **filters) -> list[JobRecord]:
    return list(db.execute(jobs_query(**filters)).scalars().all())
