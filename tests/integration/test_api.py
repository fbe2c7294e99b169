from __future__ import annotations

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jobimporter.api.v1.queue import get_work_queue
from jobimporter.main import app
from jobimporter.models.base import get_db
from jobimporter.queue.base import WorkQueue
from jobimporter.services.normalizer import JobDraft
from jobimporter.services.run_tracker import (
    ItemOutcome,
    create_run,
    fail_run,
    finalize_if_complete,
    record_fetched,
    record_item_outcome,
)
from jobimporter.services.store import upsert_job

SOURCE = "https://feeds.example.com/jobs"


class _StaticQueue(WorkQueue):
    def __init__(self, counts=None, error=None):
        self._counts = counts or {}
        self._error = error

    def submit_bulk(self, units):
        raise NotImplementedError

    def counts(self):
        if self._error:
            raise self._error
        return self._counts


@pytest.fixture
async def client(engine, tmp_path):
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    sessions = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with sessions() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_work_queue] = lambda: _StaticQueue(
        {"waiting": 2, "active": 1, "completed": 7, "failed": 0}
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    await async_engine.dispose()


@pytest.fixture
def seeded(db):
    done = create_run(db, SOURCE).id
    record_fetched(db, done, 2)
    upsert_job(db, JobDraft(title="Data Engineer", url="https://jobs.example.com/1", company="Acme",
                            source=SOURCE, external_job_id="job-1"))
    record_item_outcome(db, done, ItemOutcome.created("job-1"))
    record_item_outcome(db, done, ItemOutcome.failed("job-2", "Missing required fields: url"))
    finalize_if_complete(db, done)

    broken = create_run(db, "https://down.example.com/feed").id
    fail_run(db, broken, "HTTP 500 for https://down.example.com/feed")
    return {"completed": done, "failed": broken}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_list_runs_filters_by_status(client, seeded):
    resp = await client.get("/api/v1/runs")
    assert resp.status_code == 200
    assert len(resp.json()) == 2

    resp = await client.get("/api/v1/runs", params={"status": "failed"})
    runs = resp.json()
    assert [r["id"] for r in runs] == [str(seeded["failed"])]
    assert runs[0]["error"] == "HTTP 500 for https://down.example.com/feed"


async def test_run_detail_includes_failed_jobs(client, seeded):
    resp = await client.get(f"/api/v1/runs/{seeded['completed']}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["total_fetched"] == 2
    assert body["total_imported"] == 1
    assert body["failed_jobs_count"] == 1
    assert [(f["external_job_id"], f["reason"]) for f in body["failed_jobs"]] == [
        ("job-2", "Missing required fields: url"),
    ]


async def test_unknown_run_is_404(client):
    resp = await client.get("/api/v1/runs/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404


async def test_stats(client, seeded):
    resp = await client.get("/api/v1/runs/stats")
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["total_runs"] == 2
    assert stats["runs_by_status"] == {"completed": 1, "failed": 1}
    assert stats["jobs_by_source"] == {SOURCE: 1}
    assert (stats["total_new_jobs"], stats["total_failed_jobs"]) == (1, 1)


async def test_jobs_list_and_detail(client, seeded):
    resp = await client.get("/api/v1/jobs", params={"company": "acm"})
    jobs = resp.json()
    assert [j["external_job_id"] for j in jobs] == ["job-1"]

    resp = await client.get(f"/api/v1/jobs/{jobs[0]['id']}")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Data Engineer"


async def test_queue_health(client):
    resp = await client.get("/api/v1/queue/health")
    assert resp.json() == {"waiting": 2, "active": 1, "completed": 7, "failed": 0}


async def test_queue_health_unavailable(client):
    app.dependency_overrides[get_work_queue] = lambda: _StaticQueue(error=ConnectionError("no broker"))
    resp = await client.get("/api/v1/queue/health")
    assert resp.status_code == 503


async def test_detailed_health_reports_queue_counts(client):
    resp = await client.get("/health/detailed")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == {"ok": True}
    assert body["checks"]["queue"]["counts"] == {"waiting": 2, "active": 1, "completed": 7, "failed": 0}
    assert body["checks"]["latest_run"] == {"ok": True, "run": None}


async def test_detailed_health_degrades_on_failed_run_and_queue_error(client, seeded):
    app.dependency_overrides[get_work_queue] = lambda: _StaticQueue(error=ConnectionError("no broker"))

    body = (await client.get("/health/detailed")).json()

    assert body["status"] == "degraded"
    assert body["checks"]["queue"] == {"ok": False, "message": "no broker"}
    latest = body["checks"]["latest_run"]
    assert latest["ok"] is False
    assert latest["run"]["id"] == str(seeded["failed"])
