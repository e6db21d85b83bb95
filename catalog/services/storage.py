"""
LocalPersistenceStore - durable favorites and theme preference.

Two namespaced keys live in the key-value table:
- ``<namespace>:favorites`` holds a JSON array of positive integer ids
- ``<namespace>:theme`` holds the literal string "light" or "dark"

Reads validate what they find and fall back to safe defaults on corrupt
data. Storage-layer faults are retried once and then raised as StorageError
so callers can keep working in memory.
"""

import asyncio
import json
import math
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog.datastore.repositories import KeyValueRepository
from catalog.models import ThemeMode
from catalog.services.errors import StorageError, ValidationError
from catalog.services.retry import RetryPolicy

T = TypeVar("T")


def parse_favorites(raw: str | None) -> set[int]:
    """Decode a stored favorites value, keeping only positive integer ids."""
    if not raw:
        return set()

    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.warning("Stored favorites are not valid JSON, treating as empty")
        return set()

    if not isinstance(decoded, list):
        logger.warning(
            f"Stored favorites are a {type(decoded).__name__}, expected array"
        )
        return set()

    favorites = set()
    valid_count = 0
    for item in decoded:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            continue
        if isinstance(item, float) and not (math.isfinite(item) and item.is_integer()):
            continue
        if item > 0:
            favorites.add(int(item))
            valid_count += 1

    if valid_count != len(decoded):
        logger.warning(
            f"Filtered out {len(decoded) - valid_count} invalid favorite entries"
        )
    return favorites


def serialize_favorites(favorites: set[int]) -> str:
    return json.dumps(sorted(favorites))


def validate_product_id(product_id: Any) -> int:
    if (
        isinstance(product_id, bool)
        or not isinstance(product_id, int)
        or product_id <= 0
    ):
        raise ValidationError(
            f"Invalid product ID provided: {product_id!r}",
            code="INVALID_PRODUCT_ID",
            recoverable=False,
        )
    return product_id


def validate_theme(mode: Any) -> ThemeMode:
    try:
        return ThemeMode(mode)
    except ValueError as e:
        raise ValidationError(
            f"Invalid theme mode provided: {mode!r}",
            code="INVALID_THEME",
            recoverable=False,
        ) from e


class LocalPersistenceStore:
    """
    Favorites and theme persistence on top of the key-value table.

    Usage:
        store = LocalPersistenceStore(session_factory)
        await store.write_favorite(3, present=True)
        favorites = await store.read_favorites()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        namespace: str = "@ProductCatalog",
        retry: RetryPolicy | None = None,
    ):
        self._session_factory = session_factory
        self.favorites_key = f"{namespace}:favorites"
        self.theme_key = f"{namespace}:theme"
        self._retry = retry or RetryPolicy(max_retries=1, base_delay=0.5)
        # Serializes read-modify-write of the favorites record
        self._write_lock = asyncio.Lock()

    async def _run(self, operation: Callable[[], Awaitable[T]], context: str) -> T:
        """Run a storage operation, mapping storage faults to StorageError."""

        async def guarded() -> T:
            try:
                return await operation()
            except (SQLAlchemyError, OSError) as e:
                raise StorageError(
                    f"{context} failed: {e}", code="STORAGE_ERROR"
                ) from e

        return await self._retry.run(guarded, context=context)

    async def _read_key(self, key: str) -> str | None:
        async with self._session_factory() as session:
            return await KeyValueRepository(session).get(key)

    # Favorites

    async def read_favorites(self) -> set[int]:
        """Return the stored favorite ids; corrupt data yields an empty set."""
        raw = await self._run(
            lambda: self._read_key(self.favorites_key), "Read favorites"
        )
        return parse_favorites(raw)

    async def write_favorite(self, product_id: int, present: bool) -> bool:
        """
        Add or remove one id. Idempotent.

        Returns:
            True if storage changed

        Raises:
            ValidationError: If product_id is not a positive integer
            StorageError: If the write failed after retrying
        """
        validate_product_id(product_id)
        changed, _ = await self._run(
            lambda: self._update_favorite(product_id, present),
            "Add favorite" if present else "Remove favorite",
        )
        return changed

    async def toggle_favorite(self, product_id: int) -> bool:
        """Flip membership of one id and return whether it is now a favorite."""
        validate_product_id(product_id)
        _, is_favorite = await self._run(
            lambda: self._update_favorite(product_id, None), "Toggle favorite"
        )
        return is_favorite

    async def _update_favorite(
        self, product_id: int, present: bool | None
    ) -> tuple[bool, bool]:
        async with self._write_lock, self._session_factory() as session:
            async with session.begin():
                repo = KeyValueRepository(session)
                current = parse_favorites(await repo.get(self.favorites_key))
                target = (product_id not in current) if present is None else present

                if (product_id in current) == target:
                    return False, target

                if target:
                    current.add(product_id)
                else:
                    current.discard(product_id)
                await repo.set(self.favorites_key, serialize_favorites(current))
                return True, target

    async def is_favorite(self, product_id: int) -> bool:
        return product_id in await self.read_favorites()

    # Theme

    async def read_theme(self) -> ThemeMode:
        """Return the stored theme, defaulting to light on anything unexpected."""
        raw = await self._run(lambda: self._read_key(self.theme_key), "Read theme")
        if raw in (ThemeMode.LIGHT.value, ThemeMode.DARK.value):
            return ThemeMode(raw)
        if raw is not None:
            logger.debug(f"Ignoring unexpected stored theme {raw[:20]!r}")
        return ThemeMode.LIGHT

    async def write_theme(self, mode: ThemeMode | str) -> None:
        theme = validate_theme(mode)

        async def save() -> None:
            async with self._session_factory() as session:
                async with session.begin():
                    await KeyValueRepository(session).set(self.theme_key, theme.value)

        await self._run(save, "Set theme")

    # Maintenance

    async def clear_all(self) -> None:
        """Remove both records."""

        async def clear() -> None:
            async with self._session_factory() as session:
                async with session.begin():
                    await KeyValueRepository(session).delete_many(
                        [self.favorites_key, self.theme_key]
                    )

        await self._run(clear, "Clear storage")
        logger.info("Cleared stored favorites and theme")

    async def get_storage_info(self) -> dict[str, Any]:
        """Favorite count and whether a theme is stored, for debugging."""

        async def read_both() -> tuple[str | None, str | None]:
            async with self._session_factory() as session:
                repo = KeyValueRepository(session)
                favorites = await repo.get(self.favorites_key)
                return favorites, await repo.get(self.theme_key)

        favorites, theme = await self._run(read_both, "Read storage info")
        return {
            "favorites": len(parse_favorites(favorites)),
            "has_theme": theme is not None,
        }
