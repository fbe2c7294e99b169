"""Maintenance tasks: stale run reconciliation."""

import logging
from datetime import timedelta

from jobimporter.config import get_settings
from jobimporter.models.base import get_sync_sessionmaker
from jobimporter.services.run_tracker import reconcile_stale_runs as reconcile
from jobimporter.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="jobimporter.tasks.maintenance_tasks.reconcile_stale_runs")
def reconcile_stale_runs():
    """Fail runs that never finished within the staleness window."""
    settings = get_settings()
    db = get_sync_sessionmaker()()
    try:
        reports = reconcile(db, timedelta(minutes=settings.run_stale_after_minutes))
        logger.info(f"Reconciled {len(reports)} stale import runs")
        return {"reconciled": len(reports), "runs": reports}
    finally:
        db.close()
