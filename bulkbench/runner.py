"""
Timed persistence operations.

Each operation measures only the part that talks to the store: staging
objects in the session or rewriting their fields happens before the clock
starts. Collaborator failures surface as :class:`StoreError`; nothing is
retried.
"""
import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Sequence

import asyncpg
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bulkbench.errors import StoreError
from bulkbench.logging_config import get_logger
from bulkbench.models import BulkOptions, Customer
from bulkbench.store.bulk import BulkOperations

logger = get_logger(__name__)

INSERT_NAIVE = "insert-naive"
INSERT_BULK = "insert-bulk"
UPDATE_NAIVE = "update-naive"
UPDATE_BULK = "update-bulk"
READ_ALL = "read-all"
READ_FILTERED = "read-filtered"

# Errors that mean the store, not the caller, failed
STORE_ERRORS = (
    SQLAlchemyError,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


@dataclass
class Outcome:
    """Raw result of one timed operation."""

    operation: str
    entities: int
    elapsed: timedelta
    records: list[Customer] = field(default_factory=list, repr=False)


class Stopwatch:
    def __init__(self):
        self._started = None
        self.elapsed = timedelta(0)

    def __enter__(self):
        self._started = time.perf_counter_ns()
        return self

    def __exit__(self, *exc):
        self.elapsed = timedelta(microseconds=(time.perf_counter_ns() - self._started) / 1000)
        return False


def mark_updated(record: Customer) -> None:
    record.name = "Updated_" + record.name
    record.description = record.description + "_Updated"


class OperationRunner:
    """Runs the benchmark operations against one session and bulk provider."""

    def __init__(self, session: AsyncSession, bulk: BulkOperations):
        self.session = session
        self.bulk = bulk

    @asynccontextmanager
    async def _guard(self, operation: str, entities: int):
        try:
            yield
        except STORE_ERRORS as e:
            logger.error("%s failed for %d entities: %s", operation, entities, e)
            raise StoreError(operation, entities, str(e)) from e

    def _done(self, operation: str, entities: int, watch: Stopwatch, records=()) -> Outcome:
        outcome = Outcome(operation, entities, watch.elapsed, list(records))
        logger.info(
            "%s processed %d entities in %.1fms",
            operation,
            entities,
            watch.elapsed / timedelta(milliseconds=1),
        )
        return outcome

    async def insert_naive(self, records: Sequence[Customer]) -> Outcome:
        """Stage every record in the session, then time the commit."""
        async with self._guard(INSERT_NAIVE, len(records)):
            self.session.add_all(records)
            with Stopwatch() as watch:
                await self.session.commit()
        return self._done(INSERT_NAIVE, len(records), watch, records)

    async def insert_bulk(self, records: Sequence[Customer], options: BulkOptions | None = None) -> Outcome:
        """Time a single bulk insert of the whole batch."""
        options = options or BulkOptions()
        async with self._guard(INSERT_BULK, len(records)):
            with Stopwatch() as watch:
                entities = await self.bulk.bulk_insert(self.session, records, options)
        return self._done(INSERT_BULK, entities, watch, records)

    async def update_naive(self, records: Sequence[Customer]) -> Outcome:
        """
        Rewrite the records in memory, then time the commit.

        Records this session does not track yet, such as ones loaded elsewhere
        or built from raw rows, are merged in first so the commit writes them.
        """
        async with self._guard(UPDATE_NAIVE, len(records)):
            for record in records:
                mark_updated(record)
                if record not in self.session:
                    await self.session.merge(record)
            with Stopwatch() as watch:
                await self.session.commit()
        return self._done(UPDATE_NAIVE, len(records), watch, records)

    async def update_bulk(self, records: Sequence[Customer]) -> Outcome:
        """
        Rewrite the records outside of change tracking, then time one bulk update.

        The records are detached first so the session never flushes them on
        its own and only the bulk statement reaches the store.
        """
        async with self._guard(UPDATE_BULK, len(records)):
            for record in records:
                if record in self.session:
                    self.session.expunge(record)
                mark_updated(record)
            with Stopwatch() as watch:
                entities = await self.bulk.bulk_update(self.session, records)
        return self._done(UPDATE_BULK, entities, watch, records)

    async def read_all(self) -> Outcome:
        async with self._guard(READ_ALL, 0):
            with Stopwatch() as watch:
                result = await self.session.execute(select(Customer))
                records = list(result.scalars().all())
        return self._done(READ_ALL, len(records), watch, records)

    async def read_filtered(self, ids: Sequence[int]) -> Outcome:
        """Time a fetch restricted to ``ids`` through the provider's multi-key read."""
        async with self._guard(READ_FILTERED, len(ids)):
            with Stopwatch() as watch:
                records = await self.bulk.bulk_read(self.session, ids)
        return self._done(READ_FILTERED, len(records), watch, records)
