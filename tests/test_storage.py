"""
Tests for LocalPersistenceStore.

Tests cover:
1. Favorites read validation (corrupt data never raises)
2. Favorite writes (validation, idempotency, concurrent additions)
3. Theme read fallback and write validation
4. Storage faults surfacing as StorageError
"""

import asyncio
import json

import pytest
from sqlalchemy.exc import OperationalError

from catalog.datastore.repositories import KeyValueRepository
from catalog.models import ThemeMode
from catalog.services.errors import ErrorType, StorageError, ValidationError
from catalog.services.reconciler import StateReconciler
from catalog.services.retry import RetryPolicy
from catalog.services.storage import LocalPersistenceStore, parse_favorites


async def put_raw(session_factory, key: str, value: str) -> None:
    async with session_factory() as session:
        async with session.begin():
            await KeyValueRepository(session).set(key, value)


async def get_raw(session_factory, key: str) -> str | None:
    async with session_factory() as session:
        return await KeyValueRepository(session).get(key)


class CountingSessionFactory:
    """Wraps a session factory and counts the sessions it opens."""

    def __init__(self, factory):
        self.factory = factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.factory()


class BrokenSessionFactory:
    """Session factory whose every session fails to open."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))


class TestParseFavorites:
    def test_filters_non_conforming_entries(self):
        raw = json.dumps([1, -2, "3", 4.0, 4.5, None, True, 0, 7, 7])
        assert parse_favorites(raw) == {1, 4, 7}

    @pytest.mark.parametrize("raw", [None, "", "not-json", '{"a": 1}', "null", "42"])
    def test_unusable_values_yield_empty_set(self, raw):
        assert parse_favorites(raw) == set()


class TestReadFavorites:
    @pytest.mark.asyncio
    async def test_empty_on_first_run(self, store):
        assert await store.read_favorites() == set()

    @pytest.mark.asyncio
    async def test_corrupt_value_returns_empty_set(self, store, session_factory):
        await put_raw(session_factory, store.favorites_key, "not-json")
        assert await store.read_favorites() == set()

    @pytest.mark.asyncio
    async def test_keys_are_namespaced(self, session_factory):
        store = LocalPersistenceStore(session_factory, namespace="@Shop")
        assert store.favorites_key == "@Shop:favorites"
        assert store.theme_key == "@Shop:theme"


class TestWriteFavorite:
    @pytest.mark.asyncio
    async def test_add_and_remove(self, store, session_factory):
        assert await store.write_favorite(3, present=True) is True
        assert await store.write_favorite(1, present=True) is True
        assert await store.read_favorites() == {1, 3}
        assert await get_raw(session_factory, store.favorites_key) == "[1, 3]"

        assert await store.write_favorite(3, present=False) is True
        assert await store.read_favorites() == {1}

    @pytest.mark.asyncio
    async def test_idempotent(self, store):
        await store.write_favorite(3, present=True)
        assert await store.write_favorite(3, present=True) is False
        assert await store.write_favorite(9, present=False) is False
        assert await store.read_favorites() == {3}

    @pytest.mark.asyncio
    async def test_preserves_ids_written_by_another_writer(self, store, session_factory):
        other = LocalPersistenceStore(session_factory)
        await store.write_favorite(1, present=True)
        await other.write_favorite(2, present=True)
        await store.write_favorite(3, present=True)
        assert await store.read_favorites() == {1, 2, 3}

    @pytest.mark.asyncio
    async def test_concurrent_writes_keep_every_id(self, store):
        await asyncio.gather(
            *(store.write_favorite(pid, present=True) for pid in range(1, 6))
        )
        assert await store.read_favorites() == {1, 2, 3, 4, 5}

    @pytest.mark.asyncio
    async def test_concurrent_writers_on_separate_stores(self, session_factory):
        stores = [LocalPersistenceStore(session_factory) for _ in range(3)]
        await asyncio.gather(
            *(
                stores[pid % 3].write_favorite(pid, present=True)
                for pid in range(1, 10)
            )
        )
        assert await stores[0].read_favorites() == set(range(1, 10))

    @pytest.mark.asyncio
    async def test_concurrent_mixed_adds_and_removes(self, store):
        for pid in (1, 2, 3):
            await store.write_favorite(pid, present=True)

        await asyncio.gather(
            store.write_favorite(1, present=False),
            store.toggle_favorite(2),
            store.write_favorite(4, present=True),
            store.toggle_favorite(5),
        )
        assert await store.read_favorites() == {3, 4, 5}

    @pytest.mark.asyncio
    async def test_reconcile_alongside_direct_writes(self, store, reporter):
        await store.write_favorite(1, present=True)
        reconciler = StateReconciler(store, reporter)

        result, *_ = await asyncio.gather(
            reconciler.reconcile({1, 2, 3}),
            store.write_favorite(10, present=True),
            store.write_favorite(11, present=True),
        )

        # Direct writes survive unless the reconciler saw and removed them
        assert result.ok
        assert await store.read_favorites() == {1, 2, 3, 10, 11} - result.removed

    @pytest.mark.asyncio
    async def test_repairs_corrupt_value(self, store, session_factory):
        await put_raw(session_factory, store.favorites_key, "[1, -4, \"x\"]")
        await store.write_favorite(2, present=True)
        assert await get_raw(session_factory, store.favorites_key) == "[1, 2]"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", [0, -1, "3", 2.5, True, None])
    async def test_rejects_invalid_ids(self, store, bad_id):
        with pytest.raises(ValidationError) as exc_info:
            await store.write_favorite(bad_id, present=True)
        assert exc_info.value.code == "INVALID_PRODUCT_ID"
        assert await store.read_favorites() == set()

    @pytest.mark.asyncio
    async def test_toggle_and_is_favorite(self, store):
        assert await store.toggle_favorite(5) is True
        assert await store.is_favorite(5) is True
        assert await store.toggle_favorite(5) is False
        assert await store.is_favorite(5) is False


class TestTheme:
    @pytest.mark.asyncio
    async def test_absent_defaults_to_light(self, store):
        assert await store.read_theme() == ThemeMode.LIGHT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["blue", "DARK", '{"mode": "dark"}', ""])
    async def test_invalid_stored_value_falls_back_to_light(
        self, store, session_factory, raw
    ):
        await put_raw(session_factory, store.theme_key, raw)
        assert await store.read_theme() == ThemeMode.LIGHT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["dark", ThemeMode.DARK])
    async def test_write_and_read(self, store, session_factory, mode):
        await store.write_theme(mode)
        assert await store.read_theme() == ThemeMode.DARK
        assert await get_raw(session_factory, store.theme_key) == "dark"

    @pytest.mark.asyncio
    async def test_rejects_unknown_theme(self, store):
        with pytest.raises(ValidationError) as exc_info:
            await store.write_theme("sepia")
        assert exc_info.value.code == "INVALID_THEME"


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_storage_info_and_clear_all(self, store):
        await store.write_favorite(1, present=True)
        await store.write_favorite(2, present=True)
        await store.write_theme("dark")
        assert await store.get_storage_info() == {"favorites": 2, "has_theme": True}

        await store.clear_all()
        assert await store.get_storage_info() == {"favorites": 0, "has_theme": False}
        assert await store.read_theme() == ThemeMode.LIGHT

    @pytest.mark.asyncio
    async def test_storage_info_reads_one_snapshot(self, session_factory):
        counting = CountingSessionFactory(session_factory)
        store = LocalPersistenceStore(counting)
        await store.write_favorite(1, present=True)
        counting.calls = 0

        assert await store.get_storage_info() == {"favorites": 1, "has_theme": False}
        assert counting.calls == 1


class TestStorageFaults:
    def make_store(self):
        factory = BrokenSessionFactory()
        store = LocalPersistenceStore(
            factory, retry=RetryPolicy(max_retries=1, base_delay=0.0)
        )
        return store, factory

    @pytest.mark.asyncio
    async def test_read_fault_raises_storage_error_after_one_retry(self):
        store, factory = self.make_store()
        with pytest.raises(StorageError) as exc_info:
            await store.read_favorites()

        assert factory.calls == 2
        assert exc_info.value.error_type == ErrorType.STORAGE
        assert exc_info.value.code == "STORAGE_ERROR"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_write_fault_raises_storage_error(self):
        store, _ = self.make_store()
        with pytest.raises(StorageError) as exc_info:
            await store.write_favorite(1, present=True)
        assert exc_info.value.user_message == (
            "Unable to save your preferences. Please try again."
        )

    @pytest.mark.asyncio
    async def test_theme_fault_raises_storage_error(self):
        store, _ = self.make_store()
        with pytest.raises(StorageError):
            await store.write_theme("dark")
        with pytest.raises(StorageError):
            await store.read_theme()
