"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mediaqueue.config import Settings
from mediaqueue.db import (
    ConfigurationRepository,
    QueueRepository,
    create_schema,
    create_session_factory,
    get_memory_engine,
)
from mediaqueue.db.models import FailedJob, QueueJob
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.types.job import QueueJobModel, utcnow


@pytest_asyncio.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory database engine with the schema in place."""
    engine = get_memory_engine()
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def store(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[QueueRepository, None]:
    """Create a queue store over its own session."""
    repository = QueueRepository(session_factory())

    yield repository

    await repository.dispose()


@pytest.fixture
def job_queue(store: QueueRepository) -> JobQueue:
    """Create a job queue that retries store errors without waiting."""
    return JobQueue(
        store,
        max_attempts=3,
        retry_max_attempts=5,
        retry_base_delay=0,
        retry_max_jitter=0,
    )


@pytest.fixture
def configuration_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> ConfigurationRepository:
    """Create a configuration store on the test engine."""
    return ConfigurationRepository(session_factory)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        log_level="DEBUG",
        log_format="console",
        queue_poll_interval_seconds=0.01,
        queue_spawn_delay_seconds=0,
        db_retry_base_delay_seconds=0,
        db_retry_max_jitter_seconds=0,
    )


@pytest.fixture
def make_job():
    """Build an unsaved queued job."""

    def _make_job(
        payload: str,
        queue: str = "default",
        priority: int = 0,
    ) -> QueueJobModel:
        now = utcnow()
        return QueueJobModel(
            queue=queue,
            payload=payload,
            priority=priority,
            available_at=now,
            created_at=now,
        )

    return _make_job


@pytest.fixture
def count_rows(session_factory: async_sessionmaker[AsyncSession]):
    """Count committed rows in the queued and failed job tables."""

    async def _count_rows() -> tuple[int, int]:
        async with session_factory() as session:
            queued = await session.scalar(select(func.count()).select_from(QueueJob))
            failed = await session.scalar(select(func.count()).select_from(FailedJob))
            return queued or 0, failed or 0

    return _count_rows
