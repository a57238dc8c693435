"""
SQLAlchemy database models.
Defines the queue, dead-letter, cron and configuration tables.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from mediaqueue.constants import DEFAULT_CONNECTION, DEFAULT_PRIORITY, MAX_PAYLOAD_LENGTH

# SQLite only autoincrements INTEGER PRIMARY KEY columns
Identifier = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueJob(Base):
    """
    Job model representing a pending or in-flight unit of work.

    A row is eligible for reservation while ``reserved_at`` is NULL and
    ``attempts`` has not passed the queue's max attempts. Successful jobs
    are deleted; exhausted jobs are moved to ``failed_jobs``.
    """

    __tablename__ = "queue_jobs"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)

    queue: Mapped[str] = mapped_column(String(255), nullable=False)
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
    )

    # Serialized job, see mediaqueue.queue.serialization
    payload: Mapped[str] = mapped_column(String(MAX_PAYLOAD_LENGTH), nullable=False)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    available_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        # Index for reservation polling
        Index("ix_queue_jobs_reserve", "queue", "reserved_at", "priority"),
    )

    def __repr__(self) -> str:
        return (
            f"QueueJob(id={self.id}, queue={self.queue}, "
            f"priority={self.priority}, attempts={self.attempts})"
        )


class FailedJob(Base):
    """
    Dead-letter record for a job that exhausted its attempts.
    """

    __tablename__ = "failed_jobs"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(
        Uuid,
        nullable=False,
        unique=True,
        default=uuid4,
    )
    connection: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=DEFAULT_CONNECTION,
    )
    queue: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    exception: Mapped[str] = mapped_column(Text, nullable=False)
    failed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"FailedJob(id={self.id}, uuid={self.uuid}, queue={self.queue})"


class CronJob(Base):
    """
    Named recurring-trigger definition read by the cron evaluator.
    """

    __tablename__ = "cron_jobs"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    cron_expression: Mapped[str] = mapped_column(String(255), nullable=False)
    job_type: Mapped[str] = mapped_column(String(255), nullable=False)
    parameters: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )
    last_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    next_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"CronJob(id={self.id}, name={self.name}, expr={self.cron_expression!r})"


class Configuration(Base):
    """
    Operator-tunable key/value setting, e.g. ``encoderRunners``.
    """

    __tablename__ = "configuration"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    modified_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"Configuration(key={self.key}, value={self.value!r})"
