"""
Content Cache Factory

Selects the backend (sql | memory) from Settings.cache_backend. Callers
only import get_content_cache() and never touch the concrete classes.
"""

from __future__ import annotations

from content_index.cache.base import ContentCacheBase
from content_index.core.config import Settings


def get_content_cache(settings: Settings) -> ContentCacheBase:
    backend = settings.cache_backend.lower()

    if backend == "sql":
        from content_index.cache.sql import SqlContentCache
        return SqlContentCache.from_settings(settings)

    if backend == "memory":
        from content_index.cache.memory import InMemoryContentCache
        return InMemoryContentCache()

    raise ValueError(
        f"Unknown content cache backend: '{backend}'. "
        f"Valid options: 'sql', 'memory'"
    )
