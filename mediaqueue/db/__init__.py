"""
Database module.
Contains database connection, models, and store implementations.
"""

from mediaqueue.db.configuration import ConfigurationRepository
from mediaqueue.db.connection import (
    close_db,
    create_schema,
    create_session_factory,
    get_engine,
    get_memory_engine,
    get_session_factory,
    init_db,
)
from mediaqueue.db.models import Base, Configuration, CronJob, FailedJob, QueueJob
from mediaqueue.db.repository import QueueRepository

__all__ = [
    "get_session_factory",
    "create_session_factory",
    "get_engine",
    "get_memory_engine",
    "create_schema",
    "init_db",
    "close_db",
    "QueueRepository",
    "ConfigurationRepository",
    "Base",
    "QueueJob",
    "FailedJob",
    "CronJob",
    "Configuration",
]
