"""Favorites service - in-memory favorite set kept in sync with storage."""

import asyncio

from loguru import logger

from catalog.services.errors import AppError
from catalog.services.reconciler import ReconcileResult, StateReconciler
from catalog.services.reporting import ErrorReporter, LoggingErrorReporter
from catalog.services.storage import LocalPersistenceStore, validate_product_id


class FavoritesManager:
    """
    Owns the in-memory favorite set.

    Memory is the source of truth for callers; storage failures degrade to
    memory-only operation instead of raising. Every change triggers a
    reconciler run, and runs are serialized.

    Usage:
        favorites = FavoritesManager(store)
        await favorites.load()
        await favorites.toggle(3)
    """

    def __init__(
        self,
        store: LocalPersistenceStore,
        reconciler: StateReconciler | None = None,
        reporter: ErrorReporter | None = None,
    ):
        self._store = store
        self._reporter = reporter or LoggingErrorReporter()
        self._reconciler = reconciler or StateReconciler(store, self._reporter)
        self._favorites: set[int] = set()
        self._sync_lock = asyncio.Lock()
        self.loaded = False
        self.last_sync: ReconcileResult | None = None

    @property
    def favorites(self) -> frozenset[int]:
        return frozenset(self._favorites)

    def is_favorite(self, product_id: int) -> bool:
        return product_id in self._favorites

    async def load(self) -> frozenset[int]:
        """Seed memory from storage; an unreadable store starts empty."""
        try:
            self._favorites = await self._store.read_favorites()
            logger.info(f"Loaded {len(self._favorites)} favorites from storage")
        except AppError as e:
            logger.error(f"Failed to load favorites from storage: {e}")
            self._reporter.report(e, "Load favorites", level="medium")
            self._favorites = set()
        self.loaded = True
        return self.favorites

    async def toggle(self, product_id: int) -> bool:
        """Flip one id and return whether it is now a favorite."""
        validate_product_id(product_id)
        if not self.loaded:
            await self.load()

        if product_id in self._favorites:
            self._favorites.discard(product_id)
            is_favorite = False
        else:
            self._favorites.add(product_id)
            is_favorite = True

        await self.sync()
        return is_favorite

    async def add(self, product_id: int) -> None:
        validate_product_id(product_id)
        if not self.loaded:
            await self.load()
        if product_id not in self._favorites:
            self._favorites.add(product_id)
            await self.sync()

    async def remove(self, product_id: int) -> None:
        validate_product_id(product_id)
        if not self.loaded:
            await self.load()
        if product_id in self._favorites:
            self._favorites.discard(product_id)
            await self.sync()

    async def sync(self) -> ReconcileResult:
        """Reconcile storage against the current in-memory set."""
        async with self._sync_lock:
            self.last_sync = await self._reconciler.reconcile(set(self._favorites))
            return self.last_sync
