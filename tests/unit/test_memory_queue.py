from __future__ import annotations

import threading

import pytest

from jobimporter.errors import RetryBatch, StoreError
from jobimporter.queue.base import BatchUnit, retry_delay
from jobimporter.queue.memory import InMemoryWorkQueue, ItemRateLimiter
from jobimporter.services import worker
from jobimporter.services.importer import build_local_queue
from jobimporter.services.run_tracker import create_run, get_run, record_fetched
from tests.helpers.feeds import job_items

SOURCE = "https://feeds.example.com/jobs"


def _units(count: int, items_per_unit: int = 1) -> list[BatchUnit]:
    return [
        BatchUnit(run_id="run-1", source=SOURCE, batch_index=i, items=job_items(items_per_unit, f"b{i}"))
        for i in range(count)
    ]


def test_retry_delay_doubles_from_base():
    assert [retry_delay(a) for a in (1, 2, 3)] == [2.0, 4.0, 8.0]
    assert retry_delay(2, backoff_seconds=0.5) == 1.0


def test_units_complete_and_are_counted():
    seen = []
    lock = threading.Lock()

    def handler(unit, attempt, max_attempts):
        with lock:
            seen.append((unit.batch_index, attempt, max_attempts))

    with InMemoryWorkQueue(handler, concurrency=3, rate_limit_per_second=0) as queue:
        queue.submit_bulk(_units(5))
        queue.wait_idle(timeout=10)
        counts = queue.counts()

    assert sorted(seen) == [(i, 1, 3) for i in range(5)]
    assert counts == {"waiting": 0, "active": 0, "completed": 5, "failed": 0}


def test_retry_backs_off_and_resubmits_only_held_items(sleeps):
    calls = []

    def handler(unit, attempt, max_attempts):
        calls.append((attempt, [item["guid"] for item in unit.items]))
        if attempt < 3:
            raise RetryBatch(unit.items[-1:], "database is locked")

    with InMemoryWorkQueue(handler, concurrency=1, rate_limit_per_second=0, sleep=sleeps.append) as queue:
        queue.submit_bulk(_units(1, items_per_unit=3))
        queue.wait_idle(timeout=10)
        counts = queue.counts()

    assert sleeps == [2.0, 4.0]
    assert calls == [(1, ["b0-0", "b0-1", "b0-2"]), (2, ["b0-2"]), (3, ["b0-2"])]
    assert counts["completed"] == 1


def test_unexpected_error_fails_unit_without_retry(sleeps):
    def handler(unit, attempt, max_attempts):
        if unit.batch_index == 1:
            raise RuntimeError("boom")

    with InMemoryWorkQueue(handler, concurrency=2, rate_limit_per_second=0, sleep=sleeps.append) as queue:
        queue.submit_bulk(_units(3))
        queue.wait_idle(timeout=10)
        counts = queue.counts()

    assert sleeps == []
    assert counts == {"waiting": 0, "active": 0, "completed": 2, "failed": 1}


def test_wait_idle_times_out():
    release = threading.Event()

    with InMemoryWorkQueue(lambda unit, a, m: release.wait(5), rate_limit_per_second=0) as queue:
        queue.submit_bulk(_units(1))
        with pytest.raises(TimeoutError):
            queue.wait_idle(timeout=0.05)
        release.set()
        queue.wait_idle(timeout=5)


def test_rate_limiter_spaces_items():
    clock = [100.0]
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        clock[0] += seconds

    limiter = ItemRateLimiter(per_second=100, now=lambda: clock[0], sleep=sleep)
    limiter.acquire(100)
    limiter.acquire(50)
    limiter.acquire(50)

    assert sleeps == pytest.approx([1.0, 0.5])


def test_rate_limiter_disabled_when_zero():
    sleeps = []
    limiter = ItemRateLimiter(per_second=0, sleep=sleeps.append)
    limiter.acquire(10_000)
    assert sleeps == []


def _flaky_store(monkeypatch, failures: int):
    calls = {"n": 0}
    real_upsert = worker.upsert_job

    def upsert(session, draft, now=None):
        calls["n"] += 1
        if calls["n"] <= failures:
            raise StoreError(f"transient failure {calls['n']}")
        return real_upsert(session, draft, now=now)

    monkeypatch.setattr(worker, "upsert_job", upsert)


def test_item_stored_after_two_transient_store_failures(session_factory, settings, sleeps, monkeypatch):
    _flaky_store(monkeypatch, failures=2)
    db = session_factory()
    run_id = create_run(db, SOURCE).id
    record_fetched(db, run_id, 1)

    with build_local_queue(session_factory, settings, concurrency=1, sleep=sleeps.append) as queue:
        queue.submit_bulk([BatchUnit(run_id=str(run_id), source=SOURCE, batch_index=0, items=job_items(1))])
        queue.wait_idle(timeout=30)

    run = get_run(db, run_id)
    assert sleeps == [2.0, 4.0]
    assert run.status == "completed"
    assert (run.new_jobs, run.failed_jobs_count) == (1, 0)
    db.close()


def test_item_fails_after_exhausting_attempts(session_factory, settings, sleeps, monkeypatch):
    _flaky_store(monkeypatch, failures=3)
    db = session_factory()
    run_id = create_run(db, SOURCE).id
    record_fetched(db, run_id, 1)

    with build_local_queue(session_factory, settings, concurrency=1, sleep=sleeps.append) as queue:
        queue.submit_bulk([BatchUnit(run_id=str(run_id), source=SOURCE, batch_index=0, items=job_items(1))])
        queue.wait_idle(timeout=30)
        counts = queue.counts()

    run = get_run(db, run_id)
    assert sleeps == [2.0, 4.0]
    assert counts["completed"] == 1
    assert run.status == "completed"
    assert (run.new_jobs, run.failed_jobs_count) == (0, 1)
    assert run.failed_jobs[0].reason == "Store write failed after 3 attempt(s): transient failure 3"
    db.close()
