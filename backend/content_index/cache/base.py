"""
Content Cache — Abstract Base

Per-file store of extracted text and its embedding. Every backend (SQL,
in-memory) implements this interface; the indexing service and search only
speak this protocol.

Contract (all implementations):
  - At most one record per file_id; put() overwrites in place.
  - Concurrent put() for the same file is allowed; last writer wins.
  - delete() of an unknown file_id is a no-op returning False.
  - get_many() silently omits file_ids that have no record.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from content_index.schemas.content import EmbeddingProvider, ExtractionMethod, ExtractionStatus


@dataclass
class CachedContent:
    """ExtractedContent + EmbeddingVector for one file."""
    file_id:       str
    text:          str
    method:        ExtractionMethod
    status:        ExtractionStatus
    extracted_at:  datetime
    vector:        list[float] = field(default_factory=list)
    provider_used: EmbeddingProvider = EmbeddingProvider.NONE
    computed_at:   datetime | None = None

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def dimension(self) -> int:
        return len(self.vector)


class ContentCacheBase(ABC):

    async def initialize(self) -> None:
        """Prepare backing storage (create tables, open pools). Default: nothing."""

    async def close(self) -> None:
        """Release backing resources. Default: nothing."""

    async def health(self) -> dict:
        """Backend reachability, as {"status": "ok"} or {"status": "error", "detail": ...}."""
        return {"status": "ok"}

    @abstractmethod
    async def get(self, file_id: str) -> CachedContent | None:
        """Return the record for file_id, or None."""

    @abstractmethod
    async def get_many(self, file_ids: list[str]) -> list[CachedContent]:
        """Return the records that exist, in the order of file_ids."""

    @abstractmethod
    async def put(self, content: CachedContent) -> None:
        """Insert or overwrite the record for content.file_id."""

    @abstractmethod
    async def delete(self, file_id: str) -> bool:
        """Remove the record; True if one existed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of cached files."""
