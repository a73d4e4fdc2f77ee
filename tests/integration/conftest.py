"""Integration test conftest — real SQL against in-memory SQLite.

The referral engine's queries (conversion count, ledger indices, rolling
window sum) and its SAVEPOINT handling run for real here. Every test gets
a fresh database, so nothing needs rolling back.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import dischargely.models  # noqa: F401


def _sqlite_now() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S.%f")


@pytest.fixture(autouse=True)
def _mark_integration(request):
    """Auto-mark all tests in this directory as integration."""
    request.node.add_marker(pytest.mark.integration)


@pytest.fixture
async def db_engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT; emit our own below
        dbapi_connection.isolation_level = None
        dbapi_connection.create_function("now", 0, _sqlite_now)
        dbapi_connection.create_function("gen_random_uuid", 0, lambda: uuid.uuid4().hex)

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """A session configured like the application's (no expiry on commit, no autoflush)."""
    session = AsyncSession(bind=db_engine, expire_on_commit=False, autoflush=False)
    try:
        yield session
    finally:
        await session.close()
