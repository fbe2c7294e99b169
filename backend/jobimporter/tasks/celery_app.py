"""Celery application configuration and beat schedule."""

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_init

from jobimporter.config import configure_logging, get_settings

settings = get_settings()

celery_app = Celery(
    "jobimporter",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "jobimporter.tasks.import_tasks",
        "jobimporter.tasks.maintenance_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    task_time_limit=600,
    task_soft_time_limit=540,
    task_default_queue=settings.queue_name,
    worker_concurrency=settings.queue_concurrency,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "dispatch-feed-imports": {
        "task": "jobimporter.tasks.import_tasks.dispatch_feed_imports",
        "schedule": crontab(minute=f"*/{settings.import_schedule_minutes}")
        if settings.import_schedule_minutes < 60
        else crontab(minute=0, hour=f"*/{max(1, settings.import_schedule_minutes // 60)}"),
    },
    "reconcile-stale-runs": {
        "task": "jobimporter.tasks.maintenance_tasks.reconcile_stale_runs",
        "schedule": crontab(minute=15),
    },
}


@worker_init.connect
def _prepare_worker(**kwargs):
    from jobimporter.models.base import create_tables

    configure_logging()
    create_tables()
