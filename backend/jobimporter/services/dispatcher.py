"""Submit a run's batches to the work queue."""

import logging

from jobimporter.queue.base import BatchUnit, WorkQueue

logger = logging.getLogger(__name__)


def dispatch_batches(queue: WorkQueue, run_id, source: str, batches: list[list[dict]]) -> list[BatchUnit]:
    """One unit per batch, all submitted in a single bulk call.

    Units are independent: each can succeed, retry or fail on its own.
    """
    units = [
        BatchUnit(run_id=str(run_id), source=source, batch_index=index, items=list(batch))
        for index, batch in enumerate(batches)
    ]
    queue.submit_bulk(units)
    logger.info(f"Dispatched {len(units)} batch(es) for run {run_id}")
    return units
