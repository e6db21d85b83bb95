"""
StateReconciler - brings stored favorites in line with the in-memory set.

Only the difference is written, one ``write_favorite`` per id, so ids added
to storage by someone else and not yet seen in memory survive. The writes
are not atomic as a group: an interrupted run leaves storage partially
updated and the next run converges it.
"""

from dataclasses import dataclass, field

from loguru import logger

from catalog.services.errors import AppError
from catalog.services.reporting import ErrorReporter, LoggingErrorReporter
from catalog.services.storage import LocalPersistenceStore


@dataclass(frozen=True)
class ReconcilePlan:
    """Disjoint id sets to add to and remove from storage."""

    to_add: frozenset[int]
    to_remove: frozenset[int]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation run."""

    added: set[int] = field(default_factory=set)
    removed: set[int] = field(default_factory=set)
    failed: dict[int, AppError] = field(default_factory=dict)
    skipped: bool = False  # Stored set could not be read

    @property
    def writes(self) -> int:
        return len(self.added) + len(self.removed) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.failed


class StateReconciler:
    def __init__(
        self,
        store: LocalPersistenceStore,
        reporter: ErrorReporter | None = None,
    ):
        self._store = store
        self._reporter = reporter or LoggingErrorReporter()

    @staticmethod
    def plan(memory: set[int], stored: set[int]) -> ReconcilePlan:
        return ReconcilePlan(
            to_add=frozenset(memory - stored),
            to_remove=frozenset(stored - memory),
        )

    async def reconcile(self, memory: set[int]) -> ReconcileResult:
        """
        Diff memory against storage and apply the minimal writes.

        A failed write is logged and reported; the remaining writes still run.
        """
        result = ReconcileResult()

        try:
            stored = await self._store.read_favorites()
        except AppError as e:
            logger.error(f"Skipping favorites sync, stored set unreadable: {e}")
            self._reporter.report(e, "Sync favorites", level="medium")
            result.skipped = True
            return result

        plan = self.plan(set(memory), stored)
        if plan.is_empty:
            return result

        writes = [(pid, True) for pid in sorted(plan.to_add)] + [
            (pid, False) for pid in sorted(plan.to_remove)
        ]
        for product_id, present in writes:
            try:
                await self._store.write_favorite(product_id, present)
            except AppError as e:
                logger.warning(
                    f"Failed to {'add' if present else 'remove'} favorite {product_id}: {e}"
                )
                self._reporter.report(
                    e, "Sync favorites", level="low", product_id=product_id
                )
                result.failed[product_id] = e
                continue

            (result.added if present else result.removed).add(product_id)

        logger.debug(
            f"Synced favorites: +{len(result.added)} -{len(result.removed)} "
            f"failed={len(result.failed)}"
        )
        return result
