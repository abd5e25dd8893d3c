"""Snapshot repository selection from settings."""

import structlog

from funrun.config.settings import Settings, get_settings
from funrun.data.base import SnapshotRepository
from funrun.data.file.snapshot_repo import FileSnapshotRepository
from funrun.data.supabase.client import get_supabase_client
from funrun.data.supabase.snapshot_repo import SupabaseSnapshotRepository

log = structlog.get_logger(__name__)


async def build_snapshot_repository(settings: Settings | None = None) -> SnapshotRepository:
    """Create the repository configured by ``db_mode``.

    Raises:
        ConfigurationError: If supabase mode lacks URL or key.
        DatabaseConnectionError: If Supabase cannot be reached.
    """
    settings = settings or get_settings()

    if settings.db_mode == "supabase":
        client = await get_supabase_client()
        repo: SnapshotRepository = SupabaseSnapshotRepository(client, settings.supabase_table)
    else:
        repo = FileSnapshotRepository(
            settings.file_db_path,
            debounce_seconds=settings.file_flush_debounce_seconds,
            settings=settings,
        )

    log.info("snapshot_repository_ready", db_mode=settings.db_mode, repository=repo.name)
    return repo
