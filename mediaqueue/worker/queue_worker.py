"""
Queue worker.

One worker is one asyncio task bound to one named queue. It reserves a job,
decodes the payload into its job class, runs ``handle()``, and reports the
outcome back to the job queue: delete on success, ``fail_job`` on any
exception. It then pauses for the poll interval before the next
reservation, whether or not there was work.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from mediaqueue.constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    SPAN_EXECUTE_JOB,
    WorkerState,
)
from mediaqueue.exceptions import InvalidJobPayloadError
from mediaqueue.observability.logging import bind_context, clear_context, job_context
from mediaqueue.observability.metrics import get_metrics
from mediaqueue.observability.tracing import get_tracer
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.queue.serialization import ShouldQueue, deserialize_job
from mediaqueue.types.job import QueueJobModel

logger = logging.getLogger(__name__)

# Called after every loop iteration with the worker and whether it ran a job
CycleCompletedCallback = Callable[["QueueWorker", bool], Awaitable[None]]


class QueueWorker:
    """
    Execution loop for a single queue.

    Stopping is cooperative: ``stop()`` only asks the loop to end, and a
    job that is already running always finishes and is reported first.
    The pause between iterations wakes up immediately on stop.
    """

    def __init__(
        self,
        job_queue: JobQueue,
        queue_name: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        on_cycle_completed: CycleCompletedCallback | None = None,
        name: str | None = None,
    ):
        """
        Initialize the worker.

        Args:
            job_queue: Queue to reserve jobs from and report outcomes to.
            queue_name: Name of the queue this worker serves.
            poll_interval: Seconds to pause between iterations.
            on_cycle_completed: Optional hook run after every iteration.
            name: Identifier used in logs. Defaults to the queue name.
        """
        self.queue_name = queue_name
        self.name = name or queue_name
        self.poll_interval = poll_interval

        self._job_queue = job_queue
        self._on_cycle_completed = on_cycle_completed
        self._state = WorkerState.STOPPED
        self._current_job_id: int | None = None
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._metrics = get_metrics()

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def current_job_id(self) -> int | None:
        """Id of the job being processed, None between jobs."""
        return self._current_job_id

    def start(self) -> None:
        """Start the loop. Does nothing if it is already running."""
        if self.is_running:
            return

        self._stop_event = asyncio.Event()
        self._state = WorkerState.IDLE
        self._task = asyncio.create_task(self._run(), name=f"queue-worker:{self.name}")

    def stop(self) -> None:
        """Ask the loop to end after the current iteration."""
        self._stop_event.set()

    async def stop_when_ready(self) -> None:
        """Stop and wait until the in-flight job, if any, has been reported."""
        self.stop()
        if self._task is not None:
            await self._task

    async def restart(self) -> None:
        await self.stop_when_ready()
        self.start()

    async def _run(self) -> None:
        bind_context(worker=self.name, queue=self.queue_name)
        logger.info("Worker started", extra={"worker": self.name, "queue": self.queue_name})

        try:
            while not self._stop_event.is_set():
                try:
                    had_job = await self.process_next()
                except Exception:
                    logger.exception(
                        "Error in worker loop",
                        extra={"worker": self.name, "queue": self.queue_name},
                    )
                    had_job = False

                self._state = WorkerState.IDLE

                if self._on_cycle_completed is not None:
                    await self._on_cycle_completed(self, had_job)

                if self._stop_event.is_set():
                    break

                await self._pause()
        finally:
            self._state = WorkerState.STOPPED
            logger.info("Worker stopped", extra={"worker": self.name, "queue": self.queue_name})
            clear_context()

    async def process_next(self) -> bool:
        """
        Run one reservation and, if a job was reserved, execute it.

        Returns:
            True if a job was processed, False if the queue had nothing.
        """
        self._state = WorkerState.RESERVING
        job = await self._job_queue.reserve_job(self.queue_name, self._current_job_id)
        if job is None:
            return False

        self._current_job_id = job.id
        self._state = WorkerState.EXECUTING
        try:
            await self._execute(job)
        finally:
            self._current_job_id = None
        return True

    async def _execute(self, job: QueueJobModel) -> None:
        start_time = time.monotonic()

        with (
            job_context(job.id, job.attempts),
            get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span,
        ):
            span.set_attribute("job_id", str(job.id))
            span.set_attribute("queue", job.queue)
            span.set_attribute("attempt", job.attempts)

            try:
                instance = deserialize_job(job.payload)
                if not isinstance(instance, ShouldQueue):
                    raise InvalidJobPayloadError(type(instance).__qualname__)

                logger.info(
                    "Executing job",
                    extra={
                        "job_id": job.id,
                        "queue": job.queue,
                        "job_class": type(instance).__qualname__,
                        "attempt": job.attempts,
                    },
                )
                await instance.handle()
            except Exception as e:
                span.record_exception(e)
                status = "failed"
                await self._job_queue.fail_job(job, e)
            else:
                status = "succeeded"
                await self._job_queue.delete_job(job)

        duration = time.monotonic() - start_time
        self._metrics.record_job_completed(
            queue=job.queue,
            status=status,
            duration_seconds=duration,
        )
        logger.info(
            "Job finished",
            extra={
                "job_id": job.id,
                "queue": job.queue,
                "status": status,
                "duration": f"{duration:.2f}s",
            },
        )

    async def _pause(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    def __repr__(self) -> str:
        return f"QueueWorker(name={self.name!r}, queue={self.queue_name!r}, state={self._state})"
