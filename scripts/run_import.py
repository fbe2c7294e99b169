#!/usr/bin/env python3
"""Run a feed import in-process, without Celery.

Fetches every configured feed (or the ones given on the command line), runs
the upsert workers on a local thread pool and prints one summary per run.

Usage:
    python scripts/run_import.py
    python scripts/run_import.py https://jobicy.com/?feed=job_feed --batch-size 50
    python scripts/run_import.py --reconcile
"""

import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

import argparse
import json
import logging
from datetime import timedelta

from jobimporter.config import configure_logging, get_settings
from jobimporter.models.base import create_tables, get_sync_sessionmaker
from jobimporter.schemas.import_run import ImportRunRead
from jobimporter.services.importer import build_local_queue, run_imports
from jobimporter.services.run_tracker import get_run, reconcile_stale_runs

logger = logging.getLogger(__name__)


def import_feeds(feed_urls: list[str], batch_size: int | None, concurrency: int | None) -> list[dict]:
    settings = get_settings()
    if batch_size:
        settings = settings.model_copy(update={"import_batch_size": batch_size})

    session_factory = get_sync_sessionmaker()
    overrides = {"concurrency": concurrency} if concurrency else {}
    with build_local_queue(session_factory, settings, **overrides) as queue:
        results = run_imports(feed_urls, queue, session_factory, settings=settings)
        queue.wait_idle()
        logger.info(f"Queue counts: {queue.counts()}")

    summaries = []
    db = session_factory()
    try:
        for url, run_id in results.items():
            run = get_run(db, run_id) if run_id else None
            if run is None:
                summaries.append({"source_url": url, "status": "not started"})
                continue
            summary = ImportRunRead.model_validate(run).model_dump(mode="json")
            summary["failed_jobs"] = summary["failed_jobs"][:20]
            summaries.append(summary)
    finally:
        db.close()
    return summaries


def main():
    parser = argparse.ArgumentParser(description="Import job feeds in-process")
    parser.add_argument("feeds", nargs="*", help="Feed URLs (default: FEED_URLS from settings)")
    parser.add_argument("--batch-size", type=int, help="Items per batch")
    parser.add_argument("--concurrency", type=int, help="Worker threads")
    parser.add_argument("--reconcile", action="store_true", help="Fail stale unfinished runs and exit")
    args = parser.parse_args()

    configure_logging()
    create_tables()
    settings = get_settings()

    if args.reconcile:
        db = get_sync_sessionmaker()()
        try:
            reports = reconcile_stale_runs(db, timedelta(minutes=settings.run_stale_after_minutes))
        finally:
            db.close()
        print(json.dumps(reports, indent=2))
        return

    summaries = import_feeds(args.feeds or settings.feed_urls, args.batch_size, args.concurrency)
    print(json.dumps(summaries, indent=2))


if __name__ == "__main__":
    main()
