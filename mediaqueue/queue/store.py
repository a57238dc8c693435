"""
Persistence contracts consumed by the queue core.

``QueueStore`` is pure CRUD plus a few filtered queries over queued jobs,
failed jobs and cron jobs. It carries no business rules and no locking;
the job queue serializes access around it.

``ConfigurationStore`` is the key/value store used to persist operator
settings such as per-queue worker counts.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from mediaqueue.types.job import CronJobModel, FailedJobModel, QueueJobModel


class QueueStore(ABC):
    """
    Store for queued jobs, dead letters and cron rows.

    Writes to queued jobs and cron rows are durable when the call returns.
    ``add_failed_job`` and ``remove_failed_job`` are staged and become
    durable with the next durable write or ``save_changes``.
    """

    # Queued jobs

    @abstractmethod
    async def add_job(self, job: QueueJobModel) -> None:
        """Insert a job and write the assigned id back into ``job.id``."""

    @abstractmethod
    async def remove_job(self, job: QueueJobModel) -> None:
        """Delete a job by id. Missing rows are ignored."""

    @abstractmethod
    async def get_next_job(
        self,
        queue_name: str,
        max_attempts: int,
        current_job_id: int | None,
    ) -> QueueJobModel | None:
        """
        Select the next job to reserve.

        Among unreserved rows of ``queue_name`` with
        ``attempts <= max_attempts`` return the highest priority one,
        lowest id first on ties. A non-null ``current_job_id`` means the
        caller already holds a job, so nothing is returned. An empty
        ``queue_name`` returns the first row of the table with no other
        filtering.
        """

    @abstractmethod
    async def find_job(self, job_id: int) -> QueueJobModel | None:
        """Get a job by id."""

    @abstractmethod
    async def job_exists(self, payload: str) -> bool:
        """Check if any queued job carries exactly this payload."""

    @abstractmethod
    async def update_job(self, job: QueueJobModel) -> None:
        """Persist priority, queue, attempts, reserved_at and available_at."""

    @abstractmethod
    async def reset_all_reserved_jobs(self) -> int:
        """Clear ``reserved_at`` on every job. Returns the number cleared."""

    # Failed jobs

    @abstractmethod
    async def add_failed_job(self, failed_job: FailedJobModel) -> None:
        """Stage a dead-letter row."""

    @abstractmethod
    async def remove_failed_job(self, failed_job: FailedJobModel) -> None:
        """Stage removal of a dead-letter row. Missing rows are ignored."""

    @abstractmethod
    async def find_failed_job(self, failed_job_id: int) -> FailedJobModel | None:
        """Get a dead-letter row by id."""

    @abstractmethod
    async def get_failed_jobs(
        self,
        failed_job_id: int | None = None,
    ) -> Sequence[FailedJobModel]:
        """List all dead-letter rows, or only the one with the given id."""

    # Cron jobs

    @abstractmethod
    async def get_enabled_cron_jobs(self) -> Sequence[CronJobModel]:
        """List enabled cron rows."""

    @abstractmethod
    async def find_cron_job_by_name(self, name: str) -> CronJobModel | None:
        """Get a cron row by its unique name."""

    @abstractmethod
    async def add_cron_job(self, cron_job: CronJobModel) -> None:
        """Insert a cron row and write the assigned id back."""

    @abstractmethod
    async def update_cron_job(self, cron_job: CronJobModel) -> None:
        """Persist cron_expression, is_enabled, last_run and next_run."""

    @abstractmethod
    async def remove_cron_job(self, cron_job: CronJobModel) -> None:
        """Delete a cron row. Missing rows are ignored."""

    # Unit of work

    @abstractmethod
    async def save_changes(self) -> None:
        """Make staged changes durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard staged changes after a failed operation."""

    @abstractmethod
    async def dispose(self) -> None:
        """Release the underlying connection."""


class ConfigurationStore(ABC):
    """
    Key/value store for operator-tunable settings.
    """

    @abstractmethod
    async def get_value(self, key: str) -> str | None:
        """Get a value, or None when the key is absent."""

    async def set_value(self, key: str, value: str) -> None:
        """Insert or replace a value without attribution."""
        await self.set_value_async(key, value)

    @abstractmethod
    async def set_value_async(
        self,
        key: str,
        value: str,
        modified_by: str | None = None,
    ) -> None:
        """Insert or replace a value, recording who changed it."""

    @abstractmethod
    async def has_key(self, key: str) -> bool:
        """Check if a key is present."""
