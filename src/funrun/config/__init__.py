"""Configuration module for FunRun.

Usage:
    from funrun.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.fee_pct)

Note:
    Use `get_settings()` rather than a module-level instance so that tests
    can patch the environment and call `get_settings.cache_clear()`.
"""

from funrun.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
