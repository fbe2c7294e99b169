"""Upsert worker: processes one dispatched batch.

Each item gets exactly one outcome recorded on its run:

- no usable external id, or missing title/url -> failed, no store access
- upsert inserted a row                       -> created
- upsert replaced a row                       -> updated
- store error                                 -> held back; RetryBatch while attempts
                                                 remain, failed on the last attempt
"""

import json
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from jobimporter.errors import RetryBatch, StoreError, ValidationError
from jobimporter.queue.base import BatchUnit
from jobimporter.services.external_id import resolve_external_id
from jobimporter.services.normalizer import NormalizationFailure, extract_text, normalize_item
from jobimporter.services.run_tracker import ItemOutcome, finalize_if_complete, record_item_outcome
from jobimporter.services.store import upsert_job

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    created: int = 0
    updated: int = 0
    failed: int = 0
    retry: int = 0
    run_finalized: bool = False


def describe_item(raw: dict) -> str:
    """Identifier for a failed item that has no external id."""
    title = extract_text(raw.get("title"))
    if title:
        return f"title:{title}"
    return "raw:" + json.dumps(raw, sort_keys=True, default=str)[:200]


def process_batch(db: Session, unit: BatchUnit, attempt: int = 1, max_attempts: int = 3) -> BatchReport:
    report = BatchReport()
    held: list[tuple[dict, str, str]] = []  # (raw item, external id, last error)

    def record(outcome: ItemOutcome) -> None:
        record_item_outcome(db, unit.run_id, outcome)
        setattr(report, outcome.kind, getattr(report, outcome.kind) + 1)

    for raw in unit.items:
        try:
            external_id = resolve_external_id(raw)
        except ValidationError as e:
            logger.warning(f"[{unit.name}] Skipping item: {e}")
            record(ItemOutcome.failed(describe_item(raw), str(e)))
            continue

        draft = normalize_item(raw)
        if isinstance(draft, NormalizationFailure):
            logger.warning(f"[{unit.name}] Invalid item {external_id}: {draft.reason}")
            record(ItemOutcome.failed(external_id, draft.reason))
            continue

        draft.source = unit.source
        draft.external_job_id = external_id
        try:
            result = upsert_job(db, draft)
        except StoreError as e:
            logger.warning(f"[{unit.name}] Store write failed for {external_id} (attempt {attempt}): {e}")
            held.append((raw, external_id, str(e)))
            continue

        if result == "created":
            record(ItemOutcome.created(external_id))
        else:
            record(ItemOutcome.updated(external_id))

    if held:
        if attempt < max_attempts:
            report.retry = len(held)
            raise RetryBatch([raw for raw, _, _ in held], held[-1][2])
        for _, external_id, error in held:
            record(ItemOutcome.failed(external_id, f"Store write failed after {attempt} attempt(s): {error}"))

    report.run_finalized = finalize_if_complete(db, unit.run_id)
    logger.info(
        f"[{unit.name}] attempt {attempt}: {report.created} created, "
        f"{report.updated} updated, {report.failed} failed"
    )
    return report


def run_batch(session_factory, unit: BatchUnit, attempt: int = 1, max_attempts: int = 3) -> BatchReport:
    """Queue handler: process a unit in its own session."""
    db = session_factory()
    try:
        return process_batch(db, unit, attempt=attempt, max_attempts=max_attempts)
    finally:
        db.close()
