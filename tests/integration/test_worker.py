"""
Integration tests for the queue worker loop.
"""

import asyncio
from typing import ClassVar

import pytest
import structlog
from pydantic import BaseModel

from mediaqueue.constants import WorkerState
from mediaqueue.queue.dispatcher import JobDispatcher
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.queue.serialization import ShouldQueue, register_job
from mediaqueue.worker.jobs import EchoJob, FailingJob
from mediaqueue.worker.queue_worker import QueueWorker

# Jobs record what they saw here so tests can observe execution
executed: list[str] = []
seen_context: list[dict] = []


@register_job("worker_test_record")
class RecordJob(ShouldQueue):
    queue_name: ClassVar[str] = "worker-test"

    label: str

    async def handle(self) -> None:
        executed.append(self.label)


@register_job("worker_test_blocking")
class BlockingJob(ShouldQueue):
    queue_name: ClassVar[str] = "worker-test"

    label: str
    seconds: float = 0.2

    async def handle(self) -> None:
        executed.append(f"{self.label}:start")
        await asyncio.sleep(self.seconds)
        executed.append(f"{self.label}:end")


@register_job("worker_test_context")
class ContextJob(ShouldQueue):
    queue_name: ClassVar[str] = "worker-test"

    async def handle(self) -> None:
        seen_context.append(structlog.contextvars.get_contextvars())


@register_job("worker_test_not_a_job")
class NotAJob(BaseModel):
    value: int = 0


@pytest.fixture(autouse=True)
def clear_executed():
    executed.clear()
    yield
    executed.clear()


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until the predicate holds or fail the test."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.01)


class TestProcessNext:
    """Tests for a single worker iteration."""

    async def test_success_deletes_job(self, job_queue: JobQueue, count_rows):
        """Test that a job that completes is removed from the queue."""
        await JobDispatcher(job_queue).dispatch(RecordJob(label="a"))
        worker = QueueWorker(job_queue, "worker-test")

        processed = await worker.process_next()

        assert processed is True
        assert executed == ["a"]
        assert await count_rows() == (0, 0)
        assert worker.current_job_id is None

    async def test_empty_queue(self, job_queue: JobQueue):
        worker = QueueWorker(job_queue, "worker-test")

        assert await worker.process_next() is False

    async def test_failure_keeps_job_for_retry(self, job_queue: JobQueue, count_rows):
        await JobDispatcher(job_queue).dispatch(FailingJob(reason="nope"))
        worker = QueueWorker(job_queue, FailingJob.queue_name)

        await worker.process_next()

        assert await count_rows() == (1, 0)
        job = await job_queue.reserve_job(FailingJob.queue_name)
        assert job.attempts == 2

    async def test_repeated_failure_dead_letters(self, job_queue: JobQueue, count_rows):
        """Test that a job failing max_attempts times lands in failed jobs."""
        await JobDispatcher(job_queue).dispatch(FailingJob(reason="always"))
        worker = QueueWorker(job_queue, FailingJob.queue_name)

        for _ in range(3):
            assert await worker.process_next() is True

        assert await count_rows() == (0, 1)
        failed = (await job_queue.get_failed_jobs())[0]
        assert "RuntimeError: always" in failed.exception
        assert await worker.process_next() is False

    async def test_undecodable_payload_fails_job(
        self,
        job_queue: JobQueue,
        make_job,
    ):
        await job_queue.enqueue(make_job("definitely not json", queue="worker-test"))
        worker = QueueWorker(job_queue, "worker-test")

        await worker.process_next()

        job = await job_queue.reserve_job("worker-test")
        assert job.attempts == 2

    async def test_handler_logs_carry_job_context(self, job_queue: JobQueue):
        """Test that a running handler sees its job id and attempt in the log context."""
        seen_context.clear()
        await JobDispatcher(job_queue).dispatch(ContextJob())
        worker = QueueWorker(job_queue, "worker-test")

        await worker.process_next()

        assert seen_context[0]["attempt"] == 1
        assert seen_context[0]["job_id"] is not None
        assert "job_id" not in structlog.contextvars.get_contextvars()

    async def test_payload_that_is_not_a_job(self, job_queue: JobQueue, make_job):
        """Test that a payload decoding to a non-job fails with a clear error."""
        job = make_job(
            '{"data":{"value":1},"job_type":"worker_test_not_a_job"}',
            queue="worker-test",
        )
        job.attempts = 2
        await job_queue.store.add_job(job)
        worker = QueueWorker(job_queue, "worker-test")

        await worker.process_next()

        failed = (await job_queue.get_failed_jobs())[0]
        assert "ShouldQueue" in failed.exception
        assert "NotAJob" in failed.exception


class TestWorkerLoop:
    """Tests for the running worker task."""

    async def test_worker_processes_jobs_until_stopped(self, job_queue: JobQueue):
        dispatcher = JobDispatcher(job_queue)
        for label in ("a", "b", "c"):
            await dispatcher.dispatch(RecordJob(label=label))
        worker = QueueWorker(job_queue, "worker-test", poll_interval=0.01)

        worker.start()
        await wait_until(lambda: len(executed) == 3)
        await worker.stop_when_ready()

        assert sorted(executed) == ["a", "b", "c"]
        assert worker.state == WorkerState.STOPPED
        assert worker.is_running is False

    async def test_stop_wakes_idle_worker(self, job_queue: JobQueue):
        """Test that stop does not wait out a long poll interval."""
        worker = QueueWorker(job_queue, "worker-test", poll_interval=60)
        worker.start()
        await wait_until(lambda: worker.state == WorkerState.IDLE)

        await asyncio.wait_for(worker.stop_when_ready(), timeout=1)

        assert worker.is_running is False

    async def test_stop_when_ready_waits_for_running_job(
        self,
        job_queue: JobQueue,
        count_rows,
    ):
        """Test that a running job finishes and is deleted before stopping."""
        await JobDispatcher(job_queue).dispatch(BlockingJob(label="long", seconds=0.2))
        worker = QueueWorker(job_queue, "worker-test", poll_interval=0.01)
        worker.start()
        await wait_until(lambda: worker.state == WorkerState.EXECUTING)
        assert worker.current_job_id is not None

        await worker.stop_when_ready()

        assert executed == ["long:start", "long:end"]
        assert await count_rows() == (0, 0)

    async def test_cycle_callback_reports_each_iteration(self, job_queue: JobQueue):
        cycles: list[bool] = []

        async def on_cycle(worker: QueueWorker, had_job: bool) -> None:
            cycles.append(had_job)
            if len(cycles) >= 2:
                worker.stop()

        await JobDispatcher(job_queue).dispatch(EchoJob(message="hi"))
        worker = QueueWorker(
            job_queue,
            EchoJob.queue_name,
            poll_interval=0.01,
            on_cycle_completed=on_cycle,
        )

        worker.start()
        await wait_until(lambda: not worker.is_running)

        assert cycles == [True, False]

    async def test_restart(self, job_queue: JobQueue):
        """Test that restart stops the loop and starts a fresh one."""
        worker = QueueWorker(job_queue, "worker-test", poll_interval=0.01)
        worker.start()

        await worker.restart()

        assert worker.is_running is True
        await JobDispatcher(job_queue).dispatch(RecordJob(label="after-restart"))
        await wait_until(lambda: executed == ["after-restart"])
        await worker.stop_when_ready()

    async def test_start_is_idempotent(self, job_queue: JobQueue):
        worker = QueueWorker(job_queue, "worker-test", poll_interval=0.01)
        await JobDispatcher(job_queue).dispatch(RecordJob(label="once"))

        worker.start()
        worker.start()
        await wait_until(lambda: executed == ["once"])
        await worker.stop_when_ready()

        assert worker.is_running is False
