"""In-process work queue backed by a thread pool.

Used by scripts/run_import.py for one-off local imports and by the test suite.
Honors the same contract as the Celery queue: bounded concurrency, an item
rate limit, and retries with exponential backoff for units that raise
RetryBatch. Any other exception fails the unit permanently.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable

from jobimporter.errors import RetryBatch
from jobimporter.queue.base import BatchUnit, QUEUE_STATES, WorkQueue, retry_delay

logger = logging.getLogger(__name__)

# handler(unit, attempt, max_attempts)
BatchHandler = Callable[[BatchUnit, int, int], object]


class ItemRateLimiter:
    """Spaces out work so that at most `per_second` items start per second."""

    def __init__(
        self,
        *,
        per_second: float,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._per_second = max(0.0, float(per_second))
        self._now = now
        self._sleep = sleep
        self._next_allowed = 0.0
        self._lock = threading.Lock()

    def acquire(self, items: int) -> None:
        if self._per_second <= 0 or items <= 0:
            return
        with self._lock:
            now = self._now()
            start = max(now, self._next_allowed)
            self._next_allowed = start + items / self._per_second
        if start > now:
            self._sleep(start - now)


class InMemoryWorkQueue(WorkQueue):
    def __init__(
        self,
        handler: BatchHandler,
        *,
        concurrency: int = 10,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        rate_limit_per_second: float = 100,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._handler = handler
        self._max_attempts = max(1, int(max_attempts))
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep
        self._limiter = ItemRateLimiter(per_second=rate_limit_per_second, now=now, sleep=sleep)
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="import-worker")
        self._lock = threading.Lock()
        self._counts = {state: 0 for state in QUEUE_STATES}
        self._futures: list[Future] = []

    def submit_bulk(self, units: list[BatchUnit]) -> None:
        with self._lock:
            self._counts["waiting"] += len(units)
            for unit in units:
                self._futures.append(self._executor.submit(self._run, unit))

    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until every submitted unit (including retries) has finished."""
        while True:
            with self._lock:
                pending = [f for f in self._futures if not f.done()]
            if not pending:
                return
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                raise TimeoutError(f"{len(not_done)} unit(s) still running after {timeout}s")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "InMemoryWorkQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _move(self, from_state: str, to_state: str) -> None:
        with self._lock:
            self._counts[from_state] -= 1
            self._counts[to_state] += 1

    def _run(self, unit: BatchUnit) -> None:
        self._move("waiting", "active")
        attempt = 1
        while True:
            self._limiter.acquire(len(unit.items))
            try:
                self._handler(unit, attempt, self._max_attempts)
            except RetryBatch as e:
                if attempt >= self._max_attempts:
                    logger.error(f"{unit.name} gave up after {attempt} attempts: {e}")
                    self._move("active", "failed")
                    return
                delay = retry_delay(attempt, self._backoff_seconds)
                logger.warning(f"{unit.name} attempt {attempt} needs retry in {delay:g}s: {e}")
                self._sleep(delay)
                unit = unit.with_items(e.items)
                attempt += 1
                continue
            except Exception:
                logger.exception(f"{unit.name} failed permanently on attempt {attempt}")
                self._move("active", "failed")
                return
            self._move("active", "completed")
            return
