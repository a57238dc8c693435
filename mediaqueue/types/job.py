"""
Job-related type definitions for internal use.

These are the plain records exchanged across the store contract. They never
carry a database session, so callers can hold them across awaits.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from mediaqueue.constants import DEFAULT_CONNECTION, DEFAULT_PRIORITY


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class QueueJobModel:
    """
    A pending or in-flight unit of work.

    ``id`` is assigned by the store on insert.
    """

    queue: str
    payload: str
    priority: int = DEFAULT_PRIORITY
    attempts: int = 0
    reserved_at: datetime | None = None
    available_at: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @property
    def is_reserved(self) -> bool:
        """Check if a worker currently holds this job."""
        return self.reserved_at is not None


@dataclass
class FailedJobModel:
    """
    Dead-letter record of a job that exhausted its attempts.
    """

    queue: str
    payload: str
    exception: str
    uuid: UUID = field(default_factory=uuid4)
    connection: str = DEFAULT_CONNECTION
    failed_at: datetime = field(default_factory=utcnow)
    id: int | None = None


@dataclass
class CronJobModel:
    """
    Persisted recurring-trigger definition, evaluated by an external scheduler.
    """

    name: str
    cron_expression: str
    job_type: str
    parameters: str | None = None
    is_enabled: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None
    id: int | None = None
