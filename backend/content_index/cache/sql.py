"""
SQL content cache on SQLAlchemy 2.x async.

Upsert is done portably (select → update or insert) so the same code runs on
PostgreSQL and SQLite. A concurrent insert that loses the UNIQUE(file_id)
race is retried as an update, which gives last-writer-wins semantics.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from content_index.cache.base import CachedContent, ContentCacheBase
from content_index.core.config import Settings
from content_index.db.session import (
    check_db_health,
    create_engine,
    create_schema,
    create_session_factory,
    session_scope,
)
from content_index.models.content import FileContent
from content_index.schemas.content import EmbeddingProvider, ExtractionMethod, ExtractionStatus

logger = logging.getLogger(__name__)


def _to_cached(row: FileContent) -> CachedContent:
    return CachedContent(
        file_id=row.file_id,
        text=row.text or "",
        method=ExtractionMethod(row.method),
        status=ExtractionStatus(row.status),
        extracted_at=row.extracted_at,
        vector=[float(v) for v in (row.vector or [])],
        provider_used=EmbeddingProvider(row.provider_used),
        computed_at=row.computed_at,
    )


def _apply(row: FileContent, content: CachedContent) -> None:
    row.text          = content.text
    row.method        = content.method.value
    row.status        = content.status.value
    row.char_count    = content.char_count
    row.extracted_at  = content.extracted_at
    row.vector        = list(content.vector)
    row.dimension     = content.dimension
    row.provider_used = content.provider_used.value
    row.computed_at   = content.computed_at


class SqlContentCache(ContentCacheBase):
    """
    Usage:
        cache = SqlContentCache.from_settings(settings)
        await cache.initialize()      # creates file_contents if missing
        await cache.put(content)
    """

    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._engine  = engine
        self._factory = session_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlContentCache":
        engine = create_engine(settings)
        return cls(engine, create_session_factory(engine))

    async def initialize(self) -> None:
        await create_schema(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    async def health(self) -> dict:
        return await check_db_health(self._engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, file_id: str) -> CachedContent | None:
        async with self._factory() as session:
            row = await session.scalar(select(FileContent).where(FileContent.file_id == file_id))
            return _to_cached(row) if row is not None else None

    async def get_many(self, file_ids: list[str]) -> list[CachedContent]:
        if not file_ids:
            return []
        async with self._factory() as session:
            rows = await session.scalars(
                select(FileContent).where(FileContent.file_id.in_(set(file_ids)))
            )
            by_id = {row.file_id: _to_cached(row) for row in rows}
        return [by_id[file_id] for file_id in dict.fromkeys(file_ids) if file_id in by_id]

    async def count(self) -> int:
        async with self._factory() as session:
            return int(await session.scalar(select(func.count()).select_from(FileContent)) or 0)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, content: CachedContent) -> None:
        try:
            await self._upsert(content)
        except IntegrityError:
            # Another writer inserted the same file_id first; overwrite it.
            logger.debug("SqlContentCache | insert race for file=%s, retrying as update", content.file_id)
            await self._upsert(content)

    async def _upsert(self, content: CachedContent) -> None:
        async with session_scope(self._factory) as session:
            row = await session.scalar(
                select(FileContent).where(FileContent.file_id == content.file_id)
            )
            if row is None:
                row = FileContent(file_id=content.file_id)
                session.add(row)
            _apply(row, content)

    async def delete(self, file_id: str) -> bool:
        async with session_scope(self._factory) as session:
            result = await session.execute(
                delete(FileContent).where(FileContent.file_id == file_id)
            )
            return bool(result.rowcount)
