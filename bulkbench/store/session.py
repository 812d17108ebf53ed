"""
Engine creation, schema management and the request scoped session.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from bulkbench.config import Settings
from bulkbench.logging_config import get_logger, log_performance
from bulkbench.models import Customer

logger = get_logger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_url)
    kwargs = {"echo": settings.echo_sql}
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        # every session has to see the same in-memory database
        kwargs["poolclass"] = StaticPool
    logger.info("Creating engine for %s", url.render_as_string(hide_password=True))
    return create_async_engine(url, **kwargs)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


def asyncpg_dsn(database_url: str) -> str:
    """Turn a SQLAlchemy ``postgresql+asyncpg://`` URL into a DSN asyncpg accepts."""
    url = make_url(database_url)
    if url.get_backend_name() != "postgresql":
        raise ValueError(f"Not a PostgreSQL URL: {url.render_as_string(hide_password=True)}")
    return url.set(drivername="postgresql").render_as_string(hide_password=False)


@log_performance(logger, "create schema")
async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all, tables=[Customer.__table__])


@log_performance(logger, "drop schema")
async def drop_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all, tables=[Customer.__table__])


async def reset_schema(engine: AsyncEngine) -> None:
    """Drop and recreate the customer table, restarting identity assignment."""
    await drop_schema(engine)
    await create_schema(engine)


@asynccontextmanager
async def session_scope(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """
    Yield a session that is rolled back on any error and always closed.

    Nothing is committed implicitly; operations commit as part of what they
    measure.
    """
    session = sessionmaker()
    try:
        yield session
    except BaseException:
        await session.rollback()
        raise
    finally:
        await session.close()
