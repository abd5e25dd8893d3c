"""Supabase-backed snapshot repository.

The whole ledger lives in a single row keyed by a fixed id:

    pumpmini_store (
        id   TEXT PRIMARY KEY,
        data JSONB NOT NULL
    )

Each save is one idempotent upsert of that row.
"""

from typing import Any

import structlog

from funrun.core.exceptions import PersistenceError
from funrun.core.ledger.normalizers import default_snapshot, normalize_store
from funrun.data.base import SnapshotRepository
from funrun.data.supabase.client import SupabaseClient
from funrun.models.ledger import Store

log = structlog.get_logger(__name__)


class SupabaseSnapshotRepository(SnapshotRepository):
    """Snapshot repository storing the Store as one JSON row.

    Example:
        client = await get_supabase_client()
        repo = SupabaseSnapshotRepository(client, table="pumpmini_store")
        store = await repo.load()
        await repo.save(store)
    """

    name = "supabase"
    ROW_ID = "main"

    def __init__(self, client: SupabaseClient, table: str) -> None:
        """Initialize repository with Supabase client.

        Args:
            client: Connected SupabaseClient instance.
            table: Table holding the snapshot row.
        """
        self._client = client
        self._table = table

    async def load(self) -> Store:
        """Fetch the snapshot row, creating it on first use.

        Raises:
            PersistenceError: If the read or the lazy initialization fails.
        """
        try:
            result = await (
                self._client.client.table(self._table)
                .select("data")
                .eq("id", self.ROW_ID)
                .maybe_single()
                .execute()
            )
        except Exception as e:
            log.error("supabase_snapshot_read_failed", table=self._table, error=str(e))
            raise PersistenceError(f"Supabase read failed: {e}") from e

        row = result.data if result is not None else None
        if not row:
            snapshot = default_snapshot()
            await self._upsert(snapshot, action="init")
            log.info("supabase_snapshot_initialized", table=self._table)
            return normalize_store(snapshot)

        return normalize_store(row.get("data"))

    async def save(self, store: Store) -> None:
        """Upsert the full snapshot.

        Raises:
            PersistenceError: If the upsert fails.
        """
        await self._upsert(store.to_snapshot(), action="write")

    async def _upsert(self, snapshot: dict[str, Any], action: str) -> None:
        try:
            await (
                self._client.client.table(self._table)
                .upsert({"id": self.ROW_ID, "data": snapshot}, on_conflict="id")
                .execute()
            )
        except Exception as e:
            log.error(
                "supabase_snapshot_upsert_failed",
                table=self._table,
                action=action,
                error=str(e),
            )
            raise PersistenceError(f"Supabase {action} failed: {e}") from e

        log.debug(
            "supabase_snapshot_upserted",
            table=self._table,
            action=action,
            coins=len(snapshot.get("coins", [])),
        )
