"""Local file snapshot repository with a write-coalescing cache.

The in-memory Store is the read path once the file has been loaded.
Saves replace the cached Store and schedule a debounced flush; all
saves landing inside one debounce window collapse into a single write.

Flushes follow a small state machine:

    IDLE             -> WRITING           flush starts
    WRITING          -> WRITING_PENDING   flush requested mid-write
    WRITING_PENDING  -> WRITING           in-flight write done, write again
    WRITING          -> IDLE              nothing pending

Every write goes to ``<path>.tmp`` and is then renamed over the target
with ``os.replace``, so a crash never leaves a truncated snapshot.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from funrun.config.settings import Settings, get_settings
from funrun.core.exceptions import PersistenceError
from funrun.core.ledger.normalizers import default_snapshot, normalize_store
from funrun.data.base import SnapshotRepository
from funrun.models.ledger import Store

log = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.6


class FlushState(str, Enum):
    """Write-coalescing state."""

    IDLE = "idle"
    WRITING = "writing"
    WRITING_PENDING = "writing_pending"


def write_snapshot_atomic(path: Path, snapshot: dict[str, Any]) -> None:
    """Write snapshot JSON to a temp file and rename it over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    data = json.dumps(snapshot, separators=(",", ":"))
    with tmp.open("w", encoding="utf-8") as fh:
        fh.write(data)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp, path)


class FileSnapshotRepository(SnapshotRepository):
    """Snapshot repository backed by a JSON file.

    Attributes:
        path: Destination snapshot file.
        debounce_seconds: Write coalescing window.
        settings: Economics used to normalize stores on load and save.

    Example:
        repo = FileSnapshotRepository(Path("db.json"))
        store = await repo.load()
        await repo.save(store)   # flushed ~0.6s later
        await repo.close()       # flushes anything outstanding
    """

    name = "file"

    def __init__(
        self,
        path: Path | str,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        settings: Settings | None = None,
    ) -> None:
        self.path = Path(path)
        self.debounce_seconds = debounce_seconds
        self.settings = settings or get_settings()
        self._cache: Store | None = None
        self._state = FlushState.IDLE
        self._dirty = False
        self._debounce_task: asyncio.Task[None] | None = None
        self._flush_count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> FlushState:
        return self._state

    @property
    def flush_count(self) -> int:
        """Number of completed disk writes."""
        return self._flush_count

    @property
    def has_pending_changes(self) -> bool:
        return self._dirty

    async def load(self) -> Store:
        """Return a private copy of the cached Store.

        The file is read only the first time; it is created with an
        empty snapshot if missing.

        Raises:
            PersistenceError: If the file cannot be read or parsed.
        """
        if self._cache is None:
            self._cache = await asyncio.to_thread(self._read_from_disk)
            log.info(
                "file_snapshot_loaded",
                path=str(self.path),
                coins=len(self._cache.coins),
                profiles=len(self._cache.profiles),
            )
        return self._cache.model_copy(deep=True)

    async def save(self, store: Store) -> None:
        """Replace the cached Store and schedule a debounced flush."""
        self._cache = normalize_store(store, self.settings)
        self._dirty = True
        self._schedule_flush()

    async def flush(self) -> None:
        """Write the cached Store to disk now.

        If a write is already in flight, the request is queued and the
        in-flight flush writes again once it completes.

        Raises:
            OSError: If the write or rename fails.
        """
        if self._state != FlushState.IDLE:
            self._state = FlushState.WRITING_PENDING
            return

        self._state = FlushState.WRITING
        self._idle.clear()
        try:
            while True:
                if self._cache is None:
                    break
                snapshot = self._cache.to_snapshot()
                self._dirty = False
                try:
                    await asyncio.to_thread(write_snapshot_atomic, self.path, snapshot)
                except OSError:
                    self._dirty = True
                    raise
                self._flush_count += 1
                log.debug("file_snapshot_flushed", path=str(self.path), flushes=self._flush_count)

                if self._state == FlushState.WRITING_PENDING:
                    self._state = FlushState.WRITING
                    continue
                break
        finally:
            self._state = FlushState.IDLE
            self._idle.set()

    async def close(self) -> None:
        """Cancel the debounce timer and flush outstanding changes.

        A write already in flight is awaited first. If it fails, the retry
        it schedules is cancelled and the final flush here takes its place.
        """
        await self._cancel_debounce()
        await self._idle.wait()
        await self._cancel_debounce()

        try:
            if self._dirty:
                await self.flush()
        except OSError as e:
            log.error("file_snapshot_final_flush_failed", path=str(self.path), error=str(e))
            raise PersistenceError(f"File DB flush failed: {e}") from e
        finally:
            await self._cancel_debounce()

    async def _cancel_debounce(self) -> None:
        # The timer task detaches itself before flushing, so a task still
        # held here has not started writing.
        task, self._debounce_task = self._debounce_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _schedule_flush(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            return
        self._debounce_task = asyncio.create_task(self._debounced_flush())

    async def _debounced_flush(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._debounce_task = None
        try:
            await self.flush()
        except OSError as e:
            # In-memory snapshot stays authoritative; try again next window.
            log.error("file_snapshot_flush_failed", path=str(self.path), error=str(e))
            self._schedule_flush()

    def _read_from_disk(self) -> Store:
        try:
            if not self.path.exists():
                write_snapshot_atomic(self.path, default_snapshot())
            raw = self.path.read_text(encoding="utf-8")
            parsed = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            log.error("file_snapshot_read_failed", path=str(self.path), error=str(e))
            raise PersistenceError(f"File DB read failed: {e}") from e
        return normalize_store(parsed, self.settings)
