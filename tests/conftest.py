from __future__ import annotations

from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from jobimporter.config import Settings
from jobimporter.models.base import create_tables


@pytest.fixture
def engine(tmp_path):
    # File-backed so worker threads share one database
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        feed_urls=[],
        fetch_timeout_ms=1000,
        import_batch_size=100,
        queue_concurrency=4,
        queue_rate_limit_per_second=0,
        queue_max_attempts=3,
        queue_backoff_seconds=2.0,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Collects backoff sleeps instead of sleeping."""
    return []
