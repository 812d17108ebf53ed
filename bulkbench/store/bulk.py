"""
Bulk operation providers.

A provider persists or fetches a whole batch of customers in as few round
trips as its backend allows. ``OrmBulkOperations`` relies on SQLAlchemy's
executemany/insertmanyvalues support and runs on every backend;
``AsyncpgBulkOperations`` talks to PostgreSQL directly through an asyncpg pool.
"""
from abc import ABC
from typing import Iterator, Sequence, TypeVar

import asyncpg
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bulkbench.config import Settings
from bulkbench.errors import InvalidArgument
from bulkbench.logging_config import get_logger
from bulkbench.models import BulkOptions, Customer

logger = get_logger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _values(record: Customer) -> dict:
    return {"name": record.name, "description": record.description, "is_active": record.is_active}


class BulkOperations(ABC):
    name = "abstract"

    async def bulk_insert(self, session: AsyncSession, records: Sequence[Customer], options: BulkOptions) -> int:
        raise NotImplementedError()

    async def bulk_update(self, session: AsyncSession, records: Sequence[Customer]) -> int:
        raise NotImplementedError()

    async def bulk_read(self, session: AsyncSession, ids: Sequence[int]) -> list[Customer]:
        raise NotImplementedError()


class OrmBulkOperations(BulkOperations):
    """
    Bulk statements issued through the session.

    Inserts use one INSERT per ``batch_size`` rows; with id mapping enabled the
    statement carries ``RETURNING id`` ordered by parameter position so the ids
    can be written back. Updates use the ORM "bulk UPDATE by primary key" form.
    Reads are split into ``IN`` lists of at most ``max_parameters`` ids.
    """

    name = "orm"

    def __init__(self, max_parameters: int = 900):
        if max_parameters < 1:
            raise InvalidArgument("max_parameters must be at least 1")
        self.max_parameters = max_parameters

    async def bulk_insert(self, session, records, options):
        if not records:
            return 0
        batch_size = options.batch_size or len(records)

        if options.auto_map_output_direction:
            stmt = insert(Customer).returning(Customer.id, sort_by_parameter_order=True)
            for batch in chunked(records, batch_size):
                result = await session.execute(stmt, [_values(record) for record in batch])
                for record, new_id in zip(batch, result.scalars()):
                    record.id = new_id
        else:
            stmt = insert(Customer)
            for batch in chunked(records, batch_size):
                await session.execute(stmt, [_values(record) for record in batch])

        await session.commit()
        return len(records)

    async def bulk_update(self, session, records):
        if not records:
            return 0
        missing = sum(1 for record in records if record.id is None)
        if missing:
            raise InvalidArgument(f"{missing} records have no identity and cannot be bulk updated")

        await session.execute(
            update(Customer),
            [{"id": record.id, **_values(record)} for record in records],
        )
        await session.commit()
        return len(records)

    async def bulk_read(self, session, ids):
        found = []
        for batch in chunked(list(dict.fromkeys(ids)), self.max_parameters):
            result = await session.execute(select(Customer).where(Customer.id.in_(batch)))
            found.extend(result.scalars().all())
        return found


ALLOCATE_IDS_SQL = "SELECT nextval(pg_get_serial_sequence($1, 'id')) AS id FROM generate_series(1, $2)"

UPDATE_SQL = """
UPDATE {table} AS c
SET name = u.name, description = u.description, is_active = u.is_active
FROM unnest($1::int[], $2::text[], $3::text[], $4::bool[]) AS u(id, name, description, is_active)
WHERE c.id = u.id
"""

READ_SQL = "SELECT id, name, description, is_active FROM {table} WHERE id = ANY($1::int[])"


class AsyncpgBulkOperations(BulkOperations):
    """
    PostgreSQL native bulk path on a dedicated asyncpg pool.

    Inserts stream rows with binary ``COPY``. When ids have to be mapped back
    they are drawn from the table's serial sequence first and copied along with
    the rows, otherwise the sequence default fills them in. Updates join the
    table against ``unnest`` arrays and reads pass the whole id list as a
    single array parameter, so no statement grows with the batch size.
    """

    name = "copy"
    columns = ("name", "description", "is_active")

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool
        self.table = Customer.__tablename__

    async def bulk_insert(self, session, records, options):
        if not records:
            return 0
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                if options.auto_map_output_direction:
                    rows = await conn.fetch(ALLOCATE_IDS_SQL, self.table, len(records))
                    ids = [row["id"] for row in rows]
                    await conn.copy_records_to_table(
                        self.table,
                        records=[
                            (new_id, record.name, record.description, record.is_active)
                            for new_id, record in zip(ids, records)
                        ],
                        columns=("id",) + self.columns,
                    )
                else:
                    ids = None
                    await conn.copy_records_to_table(
                        self.table,
                        records=[(record.name, record.description, record.is_active) for record in records],
                        columns=self.columns,
                    )
        if ids is not None:
            for record, new_id in zip(records, ids):
                record.id = new_id
        return len(records)

    async def bulk_update(self, session, records):
        if not records:
            return 0
        if any(record.id is None for record in records):
            raise InvalidArgument("records without identity cannot be bulk updated")

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    UPDATE_SQL.format(table=self.table),
                    [record.id for record in records],
                    [record.name for record in records],
                    [record.description for record in records],
                    [record.is_active for record in records],
                )
        return len(records)

    async def bulk_read(self, session, ids):
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(READ_SQL.format(table=self.table), list(dict.fromkeys(ids)))
        return [Customer(**dict(row)) for row in rows]


def make_bulk_operations(settings: Settings, pool: asyncpg.Pool | None = None) -> BulkOperations:
    provider = settings.bulk_provider
    if provider == "auto":
        provider = "copy" if pool is not None else "orm"

    if provider == "copy":
        if pool is None:
            raise InvalidArgument("The copy bulk provider needs a PostgreSQL database")
        operations = AsyncpgBulkOperations(pool)
    else:
        operations = OrmBulkOperations(max_parameters=settings.max_parameters)

    logger.info("Using %s bulk provider", operations.name)
    return operations
