"""
Queue module.
Contains the job queue, dispatcher, payload serialization and cron builder.
"""

from mediaqueue.queue.cron import CronExpressionBuilder
from mediaqueue.queue.dispatcher import JobDispatcher
from mediaqueue.queue.job_queue import JobQueue
from mediaqueue.queue.serialization import (
    ShouldQueue,
    deserialize_job,
    get_job_class,
    list_job_types,
    register_job,
    serialize_job,
)
from mediaqueue.queue.store import ConfigurationStore, QueueStore

__all__ = [
    "CronExpressionBuilder",
    "JobDispatcher",
    "JobQueue",
    "ShouldQueue",
    "register_job",
    "get_job_class",
    "list_job_types",
    "serialize_job",
    "deserialize_job",
    "QueueStore",
    "ConfigurationStore",
]
