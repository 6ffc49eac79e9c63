"""Shared fixtures. Points the app at a throwaway SQLite file before it is imported."""

import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

_TEST_DB_DIR = tempfile.mkdtemp(prefix="vocab_srs_test_")
os.environ.setdefault(
    "VOCAB_SRS_DATABASE_URL", f"sqlite+aiosqlite:///{Path(_TEST_DB_DIR) / 'test.db'}"
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from backend.database import engine, init_db  # noqa: E402
from backend.models import Base  # noqa: E402
from backend.srs.sql_store import SqlRecordStore  # noqa: E402
from backend.srs.store import InMemoryRecordStore  # noqa: E402

NOW = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@asynccontextmanager
async def _sql_store_at(path: Path) -> AsyncIterator[SqlRecordStore]:
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{path}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield SqlRecordStore(
            async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        )
    finally:
        await test_engine.dispose()


@pytest_asyncio.fixture
async def sql_store(tmp_path: Path) -> AsyncIterator[SqlRecordStore]:
    """SqlRecordStore on its own SQLite file with all tables created."""
    async with _sql_store_at(tmp_path / "records.db") as sql:
        yield sql


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncIterator[object]:
    """Each RecordStore implementation in turn."""
    if request.param == "memory":
        yield InMemoryRecordStore()
        return
    async with _sql_store_at(tmp_path / "records.db") as sql:
        yield sql


@pytest_asyncio.fixture
async def app_database() -> AsyncIterator[None]:
    """The application's own database, released after the test."""
    await init_db()
    yield
    await engine.dispose()
