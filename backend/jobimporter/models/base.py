"""Base database configuration and mixins."""

import uuid
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy import JSON, Column, Uuid, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from jobimporter.config import get_settings

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _pool_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 10, "max_overflow": 20, "pool_timeout": 30}


@lru_cache
def get_async_engine():
    """Async engine for FastAPI."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        **_pool_options(settings.database_url),
    )


@lru_cache
def get_async_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        get_async_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


@lru_cache
def get_sync_engine():
    """Sync engine for Celery tasks and scripts."""
    settings = get_settings()
    sync_database_url = settings.database_url.replace("postgresql+asyncpg://", "postgresql://")
    sync_database_url = sync_database_url.replace("sqlite+aiosqlite://", "sqlite://")
    return create_engine(
        sync_database_url,
        echo=settings.debug,
        **_pool_options(sync_database_url),
    )


@lru_cache
def get_sync_sessionmaker() -> sessionmaker:
    return sessionmaker(
        bind=get_sync_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    pass


class UUIDMixin:
    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )


def create_tables(engine=None) -> None:
    """Create all tables on the sync engine (no migrations)."""
    import jobimporter.models  # noqa: F401 (registers every mapper)

    Base.metadata.create_all(engine or get_sync_engine())


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_async_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
