"""Celery-backed work queue (Redis broker).

Delivery, acks and retry scheduling are Celery's; this module only submits
units, keeps completed/failed unit counters in Redis and reads queue depth.
"""

import logging

import redis
from celery import group

from jobimporter.config import get_settings
from jobimporter.queue.base import BatchUnit, WorkQueue

logger = logging.getLogger(__name__)


def _counter_key(state: str) -> str:
    return f"{get_settings().queue_name}:units:{state}"


def _redis_client():
    return redis.from_url(get_settings().redis_url, socket_timeout=5)


def record_unit_result(state: str) -> None:
    """Bump the completed/failed unit counter. Called from task hooks."""
    try:
        _redis_client().incr(_counter_key(state))
    except redis.RedisError as e:
        logger.warning(f"Could not record queue {state} count: {e}")


class CeleryWorkQueue(WorkQueue):

    def submit_bulk(self, units: list[BatchUnit]) -> None:
        from jobimporter.tasks.import_tasks import process_batch_task

        if not units:
            return
        group(process_batch_task.s(unit.to_message()) for unit in units).apply_async()
        logger.info(f"Submitted {len(units)} batch unit(s) for run {units[0].run_id}")

    def counts(self) -> dict[str, int]:
        from jobimporter.tasks.celery_app import celery_app

        settings = get_settings()
        client = _redis_client()
        waiting = int(client.llen(settings.queue_name) or 0)
        completed = int(client.get(_counter_key("completed")) or 0)
        failed = int(client.get(_counter_key("failed")) or 0)

        inspect = celery_app.control.inspect(timeout=2)
        active_by_worker = inspect.active() or {}
        reserved_by_worker = inspect.reserved() or {}
        scheduled_by_worker = inspect.scheduled() or {}  # retries waiting on their countdown
        active = sum(len(tasks) for tasks in active_by_worker.values())
        waiting += sum(len(tasks) for tasks in reserved_by_worker.values())
        waiting += sum(len(tasks) for tasks in scheduled_by_worker.values())

        return {"waiting": waiting, "active": active, "completed": completed, "failed": failed}
