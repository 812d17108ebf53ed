"""
Test configuration and fixtures for the bulkbench test suite.
Provides an in-memory SQLite store, sessions, runners and an HTTP test client.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bulkbench.api import create_app
from bulkbench.config import Settings
from bulkbench.runner import OperationRunner
from bulkbench.store.bulk import OrmBulkOperations
from bulkbench.store.session import create_engine_from_settings, create_schema, make_sessionmaker

SQLITE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory SQLite store with small default batches."""
    return Settings(
        database_url=SQLITE_URL,
        bulk_provider="orm",
        naive_insert_count=50,
        bulk_insert_count=80,
        max_parameters=25,
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh engine with the customer table in place."""
    engine = create_engine_from_settings(settings)
    await create_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def orm_bulk(settings: Settings) -> OrmBulkOperations:
    return OrmBulkOperations(max_parameters=settings.max_parameters)


@pytest.fixture
def runner(session: AsyncSession, orm_bulk: OrmBulkOperations) -> OperationRunner:
    return OperationRunner(session, orm_bulk)


@pytest.fixture
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """HTTP client against an app whose lifespan has run."""
    with TestClient(create_app(settings)) as client:
        yield client


@asynccontextmanager
async def _context(value=None):
    yield value


@pytest.fixture
def mock_asyncpg_connection() -> MagicMock:
    """Provide a mock asyncpg connection for unit testing."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.execute = AsyncMock(return_value="UPDATE 0")
    conn.copy_records_to_table = AsyncMock(return_value="COPY 0")
    conn.transaction = MagicMock(side_effect=lambda: _context())
    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_asyncpg_connection: MagicMock) -> MagicMock:
    """Provide a mock asyncpg pool handing out the mock connection."""
    pool = MagicMock()
    pool.acquire = MagicMock(side_effect=lambda: _context(mock_asyncpg_connection))
    pool.close = AsyncMock()
    return pool
