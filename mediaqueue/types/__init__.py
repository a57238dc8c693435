"""
Type definitions for the job queue.
Contains the records exchanged between the queue core and its store.
"""

from mediaqueue.types.job import (
    CronJobModel,
    FailedJobModel,
    QueueJobModel,
    utcnow,
)

__all__ = [
    "QueueJobModel",
    "FailedJobModel",
    "CronJobModel",
    "utcnow",
]
