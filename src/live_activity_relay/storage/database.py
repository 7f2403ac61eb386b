"""Async engine and session factory for the content store."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from live_activity_relay.storage.models import Base

logger = logging.getLogger(__name__)


def create_engine(url: str, *, pool_size: int = 5) -> AsyncEngine:
    """Create an async engine; sqlite URLs skip pool sizing."""
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_size=pool_size, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create store tables if missing (used for local runs and tests)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Content store tables ensured")
