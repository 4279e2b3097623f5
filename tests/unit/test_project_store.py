"""Tests for the SQL-backed project store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from optruth.db.connection import close_db, init_db
from optruth.db.models import Base
from optruth.db.store import SqlProjectStore
from optruth.errors import PersistenceError
from optruth.sync.facade import DashboardSyncFacade
from optruth.sync.state import ProjectState


def _provider(engine):
    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session_provider():
        async with SessionLocal() as session:
            async with session.begin():
                yield session

    return session_provider


@pytest_asyncio.fixture()
async def store() -> SqlProjectStore:
    """Store over an in-memory database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield SqlProjectStore(_provider(engine))
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_unknown_project(store):
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_round_trip(store, photo_500):
    state = ProjectState.new("proj-1")
    state.work_type = "flooring"
    state.photo = photo_500
    facade = DashboardSyncFacade(state, store=store)
    facade.set_costs(approved_budget=Decimal("5000"))
    await facade.finalize()

    record = await store.get("proj-1")

    assert record.work_type == "flooring"
    assert record.is_draft is False
    assert record.labor_cost == Decimal("1080")
    assert record.labor_backfilled is True
    assert record.approved_budget == Decimal("5000")
    assert record.photo_estimate["area"] == "500"
    assert len(record.line_items) == 2

    loaded = await DashboardSyncFacade.load("proj-1", store)
    assert loaded.get_financial_summary() == facade.get_financial_summary()


@pytest.mark.asyncio
async def test_partial_update_merges(store):
    await store.update("proj-1", {"work_type": "painting", "labor_cost": "300"})
    await store.update("proj-1", {"other_cost": "50"})

    record = await store.get("proj-1")

    assert record.work_type == "painting"
    assert record.labor_cost == Decimal("300")
    assert record.other_cost == Decimal("50")


@pytest.mark.asyncio
async def test_storage_failure_raises_persistence_error():
    # No tables: every statement fails
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    store = SqlProjectStore(_provider(engine))
    try:
        with pytest.raises(PersistenceError):
            await store.get("proj-1")
        with pytest.raises(PersistenceError):
            await store.update("proj-1", {"work_type": "painting"})
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_default_session_uses_configured_database():
    await init_db()
    try:
        store = SqlProjectStore()
        await store.update("proj-1", {"work_type": "hvac"})

        record = await store.get("proj-1")
    finally:
        await close_db()

    assert record.work_type == "hvac"
