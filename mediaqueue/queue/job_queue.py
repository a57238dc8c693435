"""
Job queue.

The transactional core over a ``QueueStore``: enqueue with duplicate
suppression, reservation, failure with dead-lettering, deletion and requeue
from the failed jobs table.

Every operation takes one ``asyncio.Lock`` before touching the store, so
within a process mutating operations are strictly serialized. That lock is
what guarantees a job is held by exactly one worker; the store itself does
no locking.
"""

import asyncio
import logging
import random
import traceback
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    PendingRollbackError,
    ResourceClosedError,
    SQLAlchemyError,
)

from mediaqueue.constants import (
    BASE_RETRY_DELAY_SECONDS,
    DEFAULT_CONNECTION,
    DEFAULT_MAX_ATTEMPTS,
    MAX_DB_RETRY_ATTEMPTS,
    MAX_JITTER_SECONDS,
)
from mediaqueue.observability.metrics import get_metrics
from mediaqueue.queue.store import QueueStore
from mediaqueue.types.job import FailedJobModel, QueueJobModel, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

# The connection itself is gone; retrying inside this call cannot help
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    InterfaceError,
    DisconnectionError,
    ResourceClosedError,
    PendingRollbackError,
)

# Worth another attempt after a pause
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (SQLAlchemyError, OSError)


def format_exception(error: BaseException) -> str:
    """Render an exception with its traceback and causes, for the failed jobs table."""
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


class JobQueue:
    """
    Database-backed job queue.

    Reservation hands out the highest priority eligible job of a queue and
    stamps it as held. A job is eligible while it is unreserved and has
    been attempted at most ``max_attempts`` times. Failed attempts put the
    job back; once ``attempts`` reaches ``max_attempts`` the job moves to
    the failed jobs table in the same commit that deletes it.

    ``reserve_job``, ``fail_job``, ``requeue_failed_job`` and
    ``retry_failed_jobs`` retry transient store errors with a base delay
    plus random jitter, releasing the lock while they wait. Errors that
    mean the connection is unusable are abandoned at once; the worker loop
    simply tries again on its next iteration.
    """

    def __init__(
        self,
        store: QueueStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_max_attempts: int = MAX_DB_RETRY_ATTEMPTS,
        retry_base_delay: float = BASE_RETRY_DELAY_SECONDS,
        retry_max_jitter: float = MAX_JITTER_SECONDS,
    ):
        """
        Initialize the job queue.

        Args:
            store: Persistence for queued, failed and cron jobs.
            max_attempts: Attempts after which a failing job is dead-lettered.
            retry_max_attempts: Tries per operation on transient store errors.
            retry_base_delay: Seconds to wait between tries.
            retry_max_jitter: Upper bound of random seconds added to the wait.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.store = store
        self.max_attempts = max_attempts
        self._retry_max_attempts = max(1, retry_max_attempts)
        self._retry_base_delay = retry_base_delay
        self._retry_max_jitter = retry_max_jitter
        self._lock = asyncio.Lock()
        self._metrics = get_metrics()

    async def enqueue(self, job: QueueJobModel) -> bool:
        """
        Add a job unless one with an identical payload is already queued.

        Args:
            job: The job to insert. Its id is set on success.

        Returns:
            True if a row was written, False for a duplicate.
        """
        async with self._lock:
            try:
                if await self.store.job_exists(job.payload):
                    logger.debug(
                        "Duplicate job ignored",
                        extra={"queue": job.queue},
                    )
                    return False

                job.attempts = 0
                job.reserved_at = None
                await self.store.add_job(job)
            except TRANSIENT_ERRORS:
                await self._rollback()
                raise

        self._metrics.record_job_enqueued(job.queue)
        logger.info(
            "Job enqueued",
            extra={"job_id": job.id, "queue": job.queue, "priority": job.priority},
        )
        return True

    async def dequeue(self) -> QueueJobModel | None:
        """
        Remove and return the first job in the table.

        A plain FIFO drain with no queue, priority or reservation
        filtering; it does not go through the reservation path.
        """
        async with self._lock:
            try:
                job = await self.store.get_next_job("", self.max_attempts, None)
                if job is None:
                    return None
                await self.store.remove_job(job)
                return job
            except TRANSIENT_ERRORS:
                await self._rollback()
                raise

    async def reserve_job(
        self,
        queue_name: str,
        current_job_id: int | None = None,
    ) -> QueueJobModel | None:
        """
        Reserve the next eligible job of a queue.

        Args:
            queue_name: Queue to reserve from.
            current_job_id: Job the caller still holds, if any. A caller
                holding a job is never given a second one.

        Returns:
            The reserved job with ``reserved_at`` set and ``attempts``
            incremented, or None.
        """

        async def reserve() -> QueueJobModel | None:
            job = await self.store.get_next_job(
                queue_name, self.max_attempts, current_job_id
            )
            if job is None:
                return None

            job.reserved_at = utcnow()
            job.attempts += 1
            await self.store.update_job(job)
            return job

        job = await self._with_db_retry("reserve_job", reserve, None)
        if job is not None:
            self._metrics.record_job_reserved(job.queue)
            logger.debug(
                "Job reserved",
                extra={"job_id": job.id, "queue": job.queue, "attempts": job.attempts},
            )
        return job

    async def fail_job(self, job: QueueJobModel, error: BaseException) -> None:
        """
        Record a failed attempt.

        Clears the reservation. Below ``max_attempts`` the job stays queued
        for another try; otherwise it is deleted and a failed job carrying
        the formatted exception is written in the same commit. If the store
        write is abandoned nothing is recorded and the row keeps its
        reservation until the next startup clears it.

        Args:
            job: The reserved job whose handler failed.
            error: The exception raised while decoding or handling it.
        """
        dead_letter = job.attempts >= self.max_attempts
        exception_text = format_exception(error)

        async def fail() -> bool:
            job.reserved_at = None
            if dead_letter:
                await self.store.add_failed_job(
                    FailedJobModel(
                        connection=DEFAULT_CONNECTION,
                        queue=job.queue,
                        payload=job.payload,
                        exception=exception_text,
                        failed_at=utcnow(),
                    )
                )
                await self.store.remove_job(job)
            else:
                await self.store.update_job(job)
            return True

        if not await self._with_db_retry("fail_job", fail, False):
            logger.warning(
                "Failed attempt not recorded, job stays reserved",
                extra={"job_id": job.id, "queue": job.queue, "error": str(error)},
            )
            return

        if dead_letter:
            self._metrics.record_job_dead_lettered(job.queue)
            logger.warning(
                "Job moved to failed jobs",
                extra={
                    "job_id": job.id,
                    "queue": job.queue,
                    "attempts": job.attempts,
                    "error": str(error),
                },
            )
        else:
            logger.info(
                "Job attempt failed",
                extra={
                    "job_id": job.id,
                    "queue": job.queue,
                    "attempts": job.attempts,
                    "error": str(error),
                },
            )

    async def delete_job(self, job: QueueJobModel) -> None:
        """
        Delete a job after it completed.

        A job that is already gone is not an error. Store errors are logged
        and dropped; the worker has nothing useful to do with them.
        """
        async with self._lock:
            try:
                await self.store.remove_job(job)
            except TRANSIENT_ERRORS as e:
                await self._rollback()
                logger.warning(
                    "Failed to delete job",
                    extra={"job_id": job.id, "queue": job.queue, "error": str(e)},
                )

    async def requeue_failed_job(self, failed_job_id: int) -> bool:
        """
        Move a failed job back onto its queue with a fresh attempt count.

        Args:
            failed_job_id: Id of the failed jobs row.

        Returns:
            True if the row existed and was requeued.
        """

        async def requeue() -> bool:
            failed_job = await self.store.find_failed_job(failed_job_id)
            if failed_job is None:
                return False
            await self._requeue(failed_job)
            return True

        requeued = await self._with_db_retry("requeue_failed_job", requeue, False)
        if requeued:
            logger.info("Failed job requeued", extra={"failed_job_id": failed_job_id})
        return requeued

    async def retry_failed_jobs(self, failed_job_id: int | None = None) -> int:
        """
        Requeue every failed job, or only the one with the given id.

        Returns:
            Number of failed jobs moved back onto their queues.
        """
        requeued = 0

        async def retry_all() -> int:
            nonlocal requeued
            for failed_job in await self.store.get_failed_jobs(failed_job_id):
                await self._requeue(failed_job)
                requeued += 1
            return requeued

        await self._with_db_retry("retry_failed_jobs", retry_all, 0)

        if requeued:
            logger.info("Failed jobs requeued", extra={"count": requeued})
        return requeued

    async def reset_all_reserved_jobs(self) -> int:
        """
        Clear every reservation.

        Run once at startup: a process that died mid-job leaves its
        reservation behind, and nothing else would ever release it.

        Returns:
            Number of reservations cleared.
        """
        async with self._lock:
            try:
                cleared = await self.store.reset_all_reserved_jobs()
            except TRANSIENT_ERRORS:
                await self._rollback()
                raise

        if cleared:
            logger.info("Released orphaned reservations", extra={"count": cleared})
        return cleared

    async def get_failed_jobs(
        self,
        failed_job_id: int | None = None,
    ) -> Sequence[FailedJobModel]:
        """List failed jobs, or only the one with the given id."""
        async with self._lock:
            return await self.store.get_failed_jobs(failed_job_id)

    async def _requeue(self, failed_job: FailedJobModel) -> None:
        now = utcnow()
        await self.store.remove_failed_job(failed_job)
        await self.store.add_job(
            QueueJobModel(
                queue=failed_job.queue,
                payload=failed_job.payload,
                attempts=0,
                available_at=now,
                created_at=now,
            )
        )

    async def _with_db_retry(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
        default: T,
    ) -> T:
        """
        Run ``func`` under the lock, retrying transient store errors.

        Returns ``default`` when the connection is unusable or the retry
        budget runs out.
        """
        for attempt in range(1, self._retry_max_attempts + 1):
            async with self._lock:
                try:
                    return await func()
                except CONNECTION_ERRORS as e:
                    await self._rollback()
                    logger.debug(
                        "Store connection unavailable, abandoning operation",
                        extra={"operation": operation, "error": str(e)},
                    )
                    return default
                except TRANSIENT_ERRORS as e:
                    await self._rollback()
                    last_error = e

            if attempt < self._retry_max_attempts:
                self._metrics.record_db_retry(operation)
                delay = self._retry_base_delay + random.uniform(0, self._retry_max_jitter)
                logger.warning(
                    "Store operation failed, retrying",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay_seconds": round(delay, 3),
                        "error": str(last_error),
                    },
                )
                await asyncio.sleep(delay)

        logger.error(
            "Store operation failed, giving up",
            extra={
                "operation": operation,
                "attempts": self._retry_max_attempts,
                "error": str(last_error),
            },
        )
        return default

    async def _rollback(self) -> None:
        try:
            await self.store.rollback()
        except TRANSIENT_ERRORS as e:
            logger.debug("Rollback failed", extra={"error": str(e)})
