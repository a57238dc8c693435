"""
Configuration repository.
Implements the ConfigurationStore contract over the configuration table.
"""

import logging

from sqlalchemy import exists, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediaqueue.db.models import Configuration
from mediaqueue.queue.store import ConfigurationStore

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class ConfigurationRepository(ConfigurationStore):
    """
    Repository for configuration entries.

    Each call runs in its own short session, so the store can be shared by
    the worker pool and an admin surface without coordination.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize the repository.

        Args:
            session_factory: Factory producing sessions for each call.
        """
        self._session_factory = session_factory

    async def get_value(self, key: str) -> str | None:
        async with self._session_factory() as session:
            stmt = select(Configuration.value).where(Configuration.key == key)
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def set_value_async(
        self,
        key: str,
        value: str,
        modified_by: str | None = None,
    ) -> None:
        """
        Insert or replace a configuration value.

        Uses INSERT ... ON CONFLICT (key) DO UPDATE so concurrent writers
        never trip the unique constraint.
        """
        async with self._session_factory() as session:
            insert = _INSERTS.get(session.bind.dialect.name)
            if insert is None:
                raise RuntimeError(
                    f"Unsupported dialect for configuration upsert: {session.bind.dialect.name}"
                )

            stmt = insert(Configuration).values(
                key=key,
                value=value,
                modified_by=modified_by,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Configuration.key],
                set_={
                    "value": stmt.excluded.value,
                    "modified_by": stmt.excluded.modified_by,
                    "updated_at": func.now(),
                },
            )
            await session.execute(stmt)
            await session.commit()

        logger.info(
            "Configuration updated",
            extra={"key": key, "value": value, "modified_by": modified_by},
        )

    async def has_key(self, key: str) -> bool:
        async with self._session_factory() as session:
            stmt = select(exists().where(Configuration.key == key))
            result = await session.execute(stmt)
            return bool(result.scalar())
