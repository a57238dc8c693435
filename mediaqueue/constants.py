"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import IntEnum, StrEnum


class WorkerState(StrEnum):
    """
    Worker loop states.

    State transitions:
    - IDLE -> RESERVING (poll)
    - RESERVING -> IDLE (queue empty, after pause)
    - RESERVING -> EXECUTING (job reserved)
    - EXECUTING -> IDLE (job deleted or failed)
    - any -> STOPPED (loop exited)
    """

    IDLE = "idle"
    RESERVING = "reserving"
    EXECUTING = "executing"
    STOPPED = "stopped"


class DayOfWeek(IntEnum):
    """Day-of-week numbering used by cron expressions (Sunday is 0)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


# Queue names used by the media server
QUEUE_DEFAULT = "default"
QUEUE_QUEUE = "queue"
QUEUE_DATA = "data"
QUEUE_ENCODER = "encoder"
QUEUE_CRON = "cron"
QUEUE_IMAGE = "image"

DEFAULT_WORKER_COUNTS: dict[str, int] = {
    QUEUE_QUEUE: 1,
    QUEUE_DATA: 10,
    QUEUE_ENCODER: 1,
    QUEUE_CRON: 1,
    QUEUE_IMAGE: 5,
}

# Suffix of the configuration key holding a queue's desired worker count
WORKER_COUNT_KEY_SUFFIX = "Runners"

# Default values
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_PRIORITY = 0
DEFAULT_CONNECTION = "default"
# Longest payload a queued job row accepts
MAX_PAYLOAD_LENGTH = 4096
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_SPAWN_DELAY_SECONDS = 0.1

# Store retry policy
MAX_DB_RETRY_ATTEMPTS = 5
BASE_RETRY_DELAY_SECONDS = 2.0
MAX_JITTER_SECONDS = 0.5

# Metrics names
METRIC_JOBS_ENQUEUED = "queue_jobs_enqueued_total"
METRIC_JOBS_RESERVED = "queue_jobs_reserved_total"
METRIC_JOBS_COMPLETED = "queue_jobs_completed_total"
METRIC_JOB_DURATION = "queue_job_duration_seconds"
METRIC_JOBS_DEAD_LETTERED = "queue_jobs_dead_lettered_total"
METRIC_WORKERS_LIVE = "queue_workers_live"
METRIC_DB_RETRIES = "queue_db_retries_total"

# Trace span names
SPAN_DISPATCH_JOB = "dispatch_job"
SPAN_EXECUTE_JOB = "execute_job"


def worker_count_key(queue_name: str) -> str:
    """Configuration key under which a queue's worker count is persisted."""
    return f"{queue_name}{WORKER_COUNT_KEY_SUFFIX}"
