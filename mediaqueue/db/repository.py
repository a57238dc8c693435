"""
Queue repository for database operations.
Implements the QueueStore contract on top of an async SQLAlchemy session.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediaqueue.db.models import CronJob, FailedJob, QueueJob
from mediaqueue.queue.store import QueueStore
from mediaqueue.types.job import CronJobModel, FailedJobModel, QueueJobModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _serialized(
    method: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Run a repository method while holding the session lock."""

    @functools.wraps(method)
    async def wrapper(self: "QueueRepository", *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            return await method(self, *args, **kwargs)

    return wrapper


class QueueRepository(QueueStore):
    """
    Repository for queue database operations.

    Holds one session for its whole life, like a unit of work:
    - writes to queue_jobs and cron_jobs commit immediately
    - dead-letter inserts and removals are staged and ride along with the
      next commit, so "move to failed" and "move back to queue" are atomic
    - the identity map is cleared after every commit, so returned models
      are always detached copies
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session
        # AsyncSession does not support concurrent use
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Queued jobs
    # ------------------------------------------------------------------

    @_serialized
    async def add_job(self, job: QueueJobModel) -> None:
        entity = QueueJob(
            queue=job.queue,
            priority=job.priority,
            payload=job.payload,
            attempts=job.attempts,
            reserved_at=job.reserved_at,
            available_at=job.available_at,
            created_at=job.created_at,
        )
        self._session.add(entity)
        await self._session.flush()
        job.id = entity.id
        await self._save_and_clear()

        logger.debug(
            "Added queue job",
            extra={"job_id": job.id, "queue": job.queue},
        )

    @_serialized
    async def remove_job(self, job: QueueJobModel) -> None:
        await self._session.execute(delete(QueueJob).where(QueueJob.id == job.id))
        await self._save_and_clear()

    @_serialized
    async def get_next_job(
        self,
        queue_name: str,
        max_attempts: int,
        current_job_id: int | None,
    ) -> QueueJobModel | None:
        if not queue_name:
            stmt = select(QueueJob).order_by(QueueJob.id.asc()).limit(1)
            result = await self._session.execute(stmt)
            row = result.scalar_one_or_none()
            return None if row is None else _to_job_model(row)

        # A caller that still holds a job never gets a second one
        if current_job_id is not None:
            return None

        stmt = (
            select(QueueJob)
            .where(
                QueueJob.reserved_at.is_(None),
                QueueJob.attempts <= max_attempts,
                QueueJob.queue == queue_name,
            )
            .order_by(QueueJob.priority.desc(), QueueJob.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return None if row is None else _to_job_model(row)

    @_serialized
    async def find_job(self, job_id: int) -> QueueJobModel | None:
        row = await self._session.get(QueueJob, job_id)
        return None if row is None else _to_job_model(row)

    @_serialized
    async def job_exists(self, payload: str) -> bool:
        stmt = select(exists().where(QueueJob.payload == payload))
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    @_serialized
    async def update_job(self, job: QueueJobModel) -> None:
        stmt = (
            update(QueueJob)
            .where(QueueJob.id == job.id)
            .values(
                priority=job.priority,
                queue=job.queue,
                attempts=job.attempts,
                reserved_at=job.reserved_at,
                available_at=job.available_at,
            )
        )
        await self._session.execute(stmt)
        await self._save_and_clear()

    @_serialized
    async def reset_all_reserved_jobs(self) -> int:
        stmt = (
            update(QueueJob)
            .where(QueueJob.reserved_at.is_not(None))
            .values(reserved_at=None)
        )
        result = await self._session.execute(stmt)
        await self._save_and_clear()
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Failed jobs
    # ------------------------------------------------------------------

    @_serialized
    async def add_failed_job(self, failed_job: FailedJobModel) -> None:
        self._session.add(
            FailedJob(
                uuid=failed_job.uuid,
                connection=failed_job.connection,
                queue=failed_job.queue,
                payload=failed_job.payload,
                exception=failed_job.exception,
                failed_at=failed_job.failed_at,
            )
        )

    @_serialized
    async def remove_failed_job(self, failed_job: FailedJobModel) -> None:
        entity = await self._session.get(FailedJob, failed_job.id)
        if entity is not None:
            await self._session.delete(entity)

    @_serialized
    async def find_failed_job(self, failed_job_id: int) -> FailedJobModel | None:
        row = await self._session.get(FailedJob, failed_job_id)
        return None if row is None else _to_failed_model(row)

    @_serialized
    async def get_failed_jobs(
        self,
        failed_job_id: int | None = None,
    ) -> Sequence[FailedJobModel]:
        stmt = select(FailedJob).order_by(FailedJob.id.asc())
        if failed_job_id is not None:
            stmt = stmt.where(FailedJob.id == failed_job_id)

        result = await self._session.execute(stmt)
        return [_to_failed_model(row) for row in result.scalars().all()]

    # ------------------------------------------------------------------
    # Cron jobs
    # ------------------------------------------------------------------

    @_serialized
    async def get_enabled_cron_jobs(self) -> Sequence[CronJobModel]:
        stmt = (
            select(CronJob)
            .where(CronJob.is_enabled.is_(True))
            .order_by(CronJob.id.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_cron_model(row) for row in result.scalars().all()]

    @_serialized
    async def find_cron_job_by_name(self, name: str) -> CronJobModel | None:
        stmt = select(CronJob).where(CronJob.name == name)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return None if row is None else _to_cron_model(row)

    @_serialized
    async def add_cron_job(self, cron_job: CronJobModel) -> None:
        entity = CronJob(
            name=cron_job.name,
            cron_expression=cron_job.cron_expression,
            job_type=cron_job.job_type,
            parameters=cron_job.parameters,
            is_enabled=cron_job.is_enabled,
            last_run=cron_job.last_run,
            next_run=cron_job.next_run,
        )
        self._session.add(entity)
        await self._session.flush()
        cron_job.id = entity.id
        await self._save_and_clear()

    @_serialized
    async def update_cron_job(self, cron_job: CronJobModel) -> None:
        stmt = (
            update(CronJob)
            .where(CronJob.id == cron_job.id)
            .values(
                cron_expression=cron_job.cron_expression,
                is_enabled=cron_job.is_enabled,
                last_run=cron_job.last_run,
                next_run=cron_job.next_run,
            )
        )
        await self._session.execute(stmt)
        await self._save_and_clear()

    @_serialized
    async def remove_cron_job(self, cron_job: CronJobModel) -> None:
        await self._session.execute(delete(CronJob).where(CronJob.id == cron_job.id))
        await self._save_and_clear()

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @_serialized
    async def save_changes(self) -> None:
        await self._save_and_clear()

    @_serialized
    async def rollback(self) -> None:
        await self._session.rollback()
        self._session.expunge_all()

    @_serialized
    async def dispose(self) -> None:
        await self._session.close()

    async def _save_and_clear(self) -> None:
        await self._session.commit()
        self._session.expunge_all()


def _to_job_model(row: QueueJob) -> QueueJobModel:
    return QueueJobModel(
        id=row.id,
        queue=row.queue,
        priority=row.priority,
        payload=row.payload,
        attempts=row.attempts,
        reserved_at=row.reserved_at,
        available_at=row.available_at,
        created_at=row.created_at,
    )


def _to_failed_model(row: FailedJob) -> FailedJobModel:
    return FailedJobModel(
        id=row.id,
        uuid=row.uuid,
        connection=row.connection,
        queue=row.queue,
        payload=row.payload,
        exception=row.exception,
        failed_at=row.failed_at,
    )


def _to_cron_model(row: CronJob) -> CronJobModel:
    return CronJobModel(
        id=row.id,
        name=row.name,
        cron_expression=row.cron_expression,
        job_type=row.job_type,
        parameters=row.parameters,
        is_enabled=row.is_enabled,
        last_run=row.last_run,
        next_run=row.next_run,
    )
