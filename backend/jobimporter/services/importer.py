"""Fetch stage of the import pipeline.

import_feed() owns one source's run up to dispatch: create the run, fetch and
parse the feed, record total_fetched, batch and dispatch. Workers take it from
there. run_imports() does this for many sources, isolating each one: a fetch,
parse or dispatch failure only fails that source's run.
"""

import logging
from functools import partial
from typing import Callable

from jobimporter.config import Settings, get_settings
from jobimporter.errors import FetchError, ParseError
from jobimporter.queue.base import WorkQueue
from jobimporter.queue.memory import InMemoryWorkQueue
from jobimporter.services.batcher import make_batches
from jobimporter.services.dispatcher import dispatch_batches
from jobimporter.services.feed import fetch_raw, parse_feed
from jobimporter.services.run_tracker import (
    create_run,
    fail_run,
    finalize_if_complete,
    mark_processing,
    record_fetched,
)
from jobimporter.services.worker import run_batch

logger = logging.getLogger(__name__)

# fetch(url, timeout_ms) -> bytes
Fetcher = Callable[[str, int], bytes]


def import_feed(
    source_url: str,
    queue: WorkQueue,
    session_factory,
    fetch: Fetcher = fetch_raw,
    settings: Settings | None = None,
):
    """Run the fetch stage for one feed. Returns the run id."""
    settings = settings or get_settings()
    db = session_factory()
    try:
        run = create_run(db, source_url)
        run_id = run.id

        try:
            raw = fetch(source_url, settings.fetch_timeout_ms)
            items = parse_feed(raw)
        except (FetchError, ParseError) as e:
            fail_run(db, run_id, str(e))
            logger.error(f"[{source_url}] Import run {run_id} failed: {e}")
            return run_id
        except Exception as e:
            # Fetchers other than fetch_raw may raise builtin or library errors
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            fail_run(db, run_id, error)
            logger.exception(f"[{source_url}] Import run {run_id} failed: {error}")
            return run_id

        record_fetched(db, run_id, len(items))
        logger.info(f"[{source_url}] Fetched {len(items)} items for run {run_id}")

        if not items:
            finalize_if_complete(db, run_id)
            return run_id

        batches = make_batches(items, settings.import_batch_size)
        try:
            dispatch_batches(queue, run_id, source_url, batches)
        except Exception as e:
            fail_run(db, run_id, f"Dispatch failed: {e}")
            logger.error(f"[{source_url}] Could not dispatch batches for run {run_id}: {e}")
            return run_id

        mark_processing(db, run_id)
        return run_id
    finally:
        db.close()


def run_imports(
    feed_urls: list[str],
    queue: WorkQueue,
    session_factory,
    fetch: Fetcher = fetch_raw,
    settings: Settings | None = None,
) -> dict[str, object]:
    """Import every feed; returns {source_url: run_id or None}. Never raises."""
    results = {}
    for url in feed_urls:
        try:
            results[url] = import_feed(url, queue, session_factory, fetch=fetch, settings=settings)
        except Exception as e:
            # e.g. database unavailable before the run could even be created
            logger.exception(f"[{url}] Import could not start: {e}")
            results[url] = None
    return results


def build_local_queue(session_factory, settings: Settings | None = None, **overrides) -> InMemoryWorkQueue:
    """In-process queue wired to the upsert worker, configured from settings."""
    settings = settings or get_settings()
    options = {
        "concurrency": settings.queue_concurrency,
        "max_attempts": settings.queue_max_attempts,
        "backoff_seconds": settings.queue_backoff_seconds,
        "rate_limit_per_second": settings.queue_rate_limit_per_second,
    }
    options.update(overrides)
    return InMemoryWorkQueue(partial(run_batch, session_factory), **options)
