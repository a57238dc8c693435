"""
Built-in jobs.

Jobs must be idempotent: a job reserved by a process that then crashes is
run again after restart.

These are small diagnostic jobs for exercising a deployment: checking that
workers pick up work, that long jobs are not interrupted by resizes, and
that failures end up in the failed jobs table.
"""

import asyncio
import logging
from typing import ClassVar

from pydantic import Field

from mediaqueue.constants import QUEUE_QUEUE
from mediaqueue.queue.serialization import ShouldQueue, register_job

logger = logging.getLogger(__name__)


@register_job("echo")
class EchoJob(ShouldQueue):
    """Logs its message."""

    queue_name: ClassVar[str] = QUEUE_QUEUE

    message: str = ""

    async def handle(self) -> None:
        logger.info("Echo job executing", extra={"message": self.message})


@register_job("sleep")
class SleepJob(ShouldQueue):
    """
    Sleeps for a while, logging progress at each checkpoint.

    Useful for checking that a resize or shutdown waits for running jobs.
    """

    queue_name: ClassVar[str] = QUEUE_QUEUE

    duration_seconds: float = Field(default=1.0, ge=0)
    checkpoint_interval: float = Field(default=5.0, gt=0)

    async def handle(self) -> None:
        elapsed = 0.0
        while elapsed < self.duration_seconds:
            step = min(self.checkpoint_interval, self.duration_seconds - elapsed)
            await asyncio.sleep(step)
            elapsed += step

            logger.info(
                "Sleep job progress",
                extra={"progress": f"{elapsed:g}/{self.duration_seconds:g}s"},
            )


@register_job("failing_job")
class FailingJob(ShouldQueue):
    """Always raises, to exercise retries and dead-lettering."""

    queue_name: ClassVar[str] = QUEUE_QUEUE

    reason: str = "Intentional failure"

    async def handle(self) -> None:
        logger.info("Failing job executing (will fail)")
        raise RuntimeError(self.reason)
