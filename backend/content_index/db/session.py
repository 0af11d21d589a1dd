"""
Database engine and session factory for the SQL content cache.

Unlike a web process with one global engine, the cache is built from an
injected Settings instance, so the engine and session factory are created
by functions rather than at import time. Tests point database_url at a
throwaway sqlite+aiosqlite file.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from content_index.core.config import Settings
from content_index.models.content import Base

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine / session factory
# ---------------------------------------------------------------------------

def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,          # detect stale connections before use
        echo=settings.db_echo_sql,   # log SQL in dev; disable in prod
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM objects usable after commit
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """One transaction: commits on clean exit, rolls back on error."""
    async with factory() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Schema / health
# ---------------------------------------------------------------------------

async def create_schema(engine: AsyncEngine) -> None:
    """Create the file_contents table if it does not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Content cache schema ready | url=%s", engine.url.render_as_string(hide_password=True))


async def check_db_health(engine: AsyncEngine) -> dict:
    """Ping the database."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
