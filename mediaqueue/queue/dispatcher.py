"""
Job dispatcher.
Serializes job objects and hands them to the job queue.
"""

import logging

from mediaqueue.constants import MAX_PAYLOAD_LENGTH, SPAN_DISPATCH_JOB
from mediaqueue.observability.tracing import get_tracer
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.queue.serialization import ShouldQueue, get_job_type, serialize_job
from mediaqueue.types.job import QueueJobModel, utcnow

logger = logging.getLogger(__name__)


class JobDispatcher:
    """
    Fire-and-forget entry point for putting work on the queue.

    Callers dispatch from inside their own operations (a library scan, an
    upload) and must not fail because of a queuing problem, so errors are
    logged here and never raised.
    """

    def __init__(self, job_queue: JobQueue):
        self._job_queue = job_queue

    async def dispatch(
        self,
        job: ShouldQueue,
        queue_name: str | None = None,
        priority: int | None = None,
    ) -> bool:
        """
        Queue a job.

        Args:
            job: The job to run.
            queue_name: Queue override. Defaults to the job's ``queue_name``.
            priority: Priority override. Defaults to the job's ``priority``.

        Returns:
            True if a new row was written, False for a duplicate, an
            oversized payload or an error.
        """
        queue = queue_name or job.queue_name
        job_priority = job.priority if priority is None else priority

        with get_tracer().start_as_current_span(SPAN_DISPATCH_JOB) as span:
            span.set_attribute("queue", queue)
            span.set_attribute("job_type", get_job_type(job) or type(job).__qualname__)

            try:
                payload = serialize_job(job)
                if len(payload) > MAX_PAYLOAD_LENGTH:
                    logger.error(
                        "Job payload too large, not dispatched",
                        extra={
                            "queue": queue,
                            "job_class": type(job).__qualname__,
                            "payload_length": len(payload),
                        },
                    )
                    return False

                now = utcnow()
                return await self._job_queue.enqueue(
                    QueueJobModel(
                        queue=queue,
                        payload=payload,
                        priority=job_priority,
                        available_at=now,
                        created_at=now,
                    )
                )
            except Exception as e:
                span.record_exception(e)
                logger.exception(
                    "Failed to dispatch job",
                    extra={"queue": queue, "job_class": type(job).__qualname__},
                )
                return False
