"""
Repository layer - encapsulates data access for key-value records.
"""

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.datastore.models import KeyValueDB


class KeyValueRepository:
    """Key-value Repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent"""
        result = await self.session.execute(
            select(KeyValueDB.value).where(KeyValueDB.key == key)
        )
        return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value"""
        existing = await self.session.get(KeyValueDB, key)
        if existing:
            existing.value = value
        else:
            self.session.add(KeyValueDB(key=key, value=value))
        logger.debug(f"Stored key {key} ({len(value)} chars)")

    async def delete_many(self, keys: list[str]) -> None:
        """Remove the given keys"""
        await self.session.execute(delete(KeyValueDB).where(KeyValueDB.key.in_(keys)))
