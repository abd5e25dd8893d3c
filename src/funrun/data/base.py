"""Snapshot repository interface.

A repository stores exactly one snapshot: the whole ledger Store.
"""

from abc import ABC, abstractmethod

from funrun.models.ledger import Store


class SnapshotRepository(ABC):
    """Durable backing for the ledger Store.

    Implementations must make ``save`` all-or-nothing from the caller's
    point of view, and must hand out Store instances from ``load`` that
    the caller may mutate freely without affecting what other callers
    observe until ``save`` is called.
    """

    name: str = "snapshot"

    @abstractmethod
    async def load(self) -> Store:
        """Return the current normalized Store."""

    @abstractmethod
    async def save(self, store: Store) -> None:
        """Persist the full Store.

        Raises:
            PersistenceError: If the backing medium rejects the write.
        """

    async def close(self) -> None:
        """Release resources and flush pending writes."""
        return None
