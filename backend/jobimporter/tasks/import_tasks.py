"""Feed import orchestration tasks."""

import logging
from dataclasses import asdict

from celery import Task

from jobimporter.config import get_settings
from jobimporter.errors import RetryBatch
from jobimporter.models.base import get_sync_sessionmaker
from jobimporter.queue.base import BatchUnit, retry_delay
from jobimporter.queue.celery_queue import CeleryWorkQueue, record_unit_result
from jobimporter.services.importer import import_feed
from jobimporter.services.worker import process_batch
from jobimporter.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)
settings = get_settings()


def batch_rate_limit(batch_size: int, items_per_second: int) -> str:
    """Celery rate limits count tasks, so convert items/sec into batches/min."""
    per_minute = max(1, (items_per_second * 60) // max(1, batch_size))
    return f"{per_minute}/m"


class BatchTask(Task):
    """Keeps the completed/failed unit counters behind the queue health view."""

    def on_success(self, retval, task_id, args, kwargs):
        record_unit_result("completed")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        record_unit_result("failed")
        logger.error(f"Batch task {task_id} failed permanently: {exc}")


@celery_app.task(name="jobimporter.tasks.import_tasks.dispatch_feed_imports")
def dispatch_feed_imports():
    """Start one import task per configured feed."""
    for url in settings.feed_urls:
        import_feed_task.delay(url)
    logger.info(f"Dispatched {len(settings.feed_urls)} feed imports")
    return {"dispatched": len(settings.feed_urls)}


@celery_app.task(name="jobimporter.tasks.import_tasks.import_feed")
def import_feed_task(source_url: str):
    """Fetch, parse and dispatch one feed. Failures end up on the run record."""
    run_id = import_feed(source_url, CeleryWorkQueue(), get_sync_sessionmaker(), settings=settings)
    return {"run_id": str(run_id)}


@celery_app.task(
    name="jobimporter.tasks.import_tasks.process_batch",
    bind=True,
    base=BatchTask,
    max_retries=settings.queue_max_attempts - 1,
    rate_limit=batch_rate_limit(settings.import_batch_size, settings.queue_rate_limit_per_second),
)
def process_batch_task(self, message: dict):
    """Upsert one batch; store errors are retried with exponential backoff."""
    unit = BatchUnit.from_message(message)
    attempt = self.request.retries + 1

    db = get_sync_sessionmaker()()
    try:
        report = process_batch(db, unit, attempt=attempt, max_attempts=settings.queue_max_attempts)
    except RetryBatch as e:
        countdown = retry_delay(attempt, settings.queue_backoff_seconds)
        logger.warning(f"[{unit.name}] Retrying {len(e.items)} item(s) in {countdown:g}s: {e.reason}")
        raise self.retry(exc=e, args=(unit.with_items(e.items).to_message(),), countdown=countdown)
    finally:
        db.close()

    return asdict(report)
