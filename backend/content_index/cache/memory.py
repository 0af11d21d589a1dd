"""In-process content cache for tests and single-process deployments."""

from __future__ import annotations

import copy

from content_index.cache.base import CachedContent, ContentCacheBase


class InMemoryContentCache(ContentCacheBase):
    """
    Dict-backed cache. Records are copied on the way in and out so callers
    can never mutate cached state by accident.
    """

    def __init__(self) -> None:
        self._records: dict[str, CachedContent] = {}

    async def get(self, file_id: str) -> CachedContent | None:
        record = self._records.get(file_id)
        return copy.deepcopy(record) if record is not None else None

    async def get_many(self, file_ids: list[str]) -> list[CachedContent]:
        return [
            copy.deepcopy(self._records[file_id])
            for file_id in dict.fromkeys(file_ids)
            if file_id in self._records
        ]

    async def put(self, content: CachedContent) -> None:
        self._records[content.file_id] = copy.deepcopy(content)

    async def delete(self, file_id: str) -> bool:
        return self._records.pop(file_id, None) is not None

    async def count(self) -> int:
        return len(self._records)
