"""Snapshot persistence adapters."""

from funrun.data.base import SnapshotRepository
from funrun.data.factory import build_snapshot_repository
from funrun.data.file.snapshot_repo import FileSnapshotRepository, FlushState
from funrun.data.supabase.snapshot_repo import SupabaseSnapshotRepository

__all__ = [
    "FileSnapshotRepository",
    "FlushState",
    "SnapshotRepository",
    "SupabaseSnapshotRepository",
    "build_snapshot_repository",
]
