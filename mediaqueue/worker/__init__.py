"""
Worker module.
Contains the queue worker loop, the worker pool manager and built-in jobs.
"""

from mediaqueue.worker.pool import WorkerPoolManager
from mediaqueue.worker.queue_worker import QueueWorker

__all__ = [
    "QueueWorker",
    "WorkerPoolManager",
]
