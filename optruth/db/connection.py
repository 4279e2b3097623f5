"""Async engine and session scope for the project store.

One engine per process, created on first use from ``DATABASE_URL``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from optruth.config import get_config
from optruth.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_kwargs(url: str, echo: bool) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        # In-memory SQLite lives on a single connection
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update({"pool_pre_ping": True, "pool_recycle": 3600})
    return kwargs


def get_engine() -> AsyncEngine:
    """Get or create the process engine.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **_engine_kwargs(db_config.url, db_config.echo))

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commits on exit, rolls back if the block raises.

    Usage:
        async with get_session() as session:
            row = await session.get(ProjectSummaryModel, project_id)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the project tables if missing."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; the next ``get_engine()`` creates a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
