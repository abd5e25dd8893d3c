"""Test support utilities for FunRun."""

from tests.support.memory_repo import MemorySnapshotRepository

__all__ = ["MemorySnapshotRepository"]
