import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg
from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bulkbench.config import Settings, get_settings
from bulkbench.errors import InvalidArgument, StoreError
from bulkbench.generator import generate
from bulkbench.logging_config import get_logger
from bulkbench.models import BenchmarkResult, BulkOptions, CompareRequest, ErrorResponse
from bulkbench.reporter import annotate, compare, report_outcome
from bulkbench.runner import OperationRunner
from bulkbench.store.bulk import BulkOperations, make_bulk_operations
from bulkbench.store.session import (
    asyncpg_dsn,
    create_engine_from_settings,
    create_schema,
    make_sessionmaker,
    reset_schema,
    session_scope,
)

logger = get_logger(__name__)

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Invalid argument"},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "Store failure"},
}


async def get_runner(request: Request) -> AsyncIterator[OperationRunner]:
    """Request scoped runner; its session is rolled back on error and always closed."""
    bench: BenchRouter = request.app.state.bench
    async with session_scope(bench.sessionmaker) as session:
        yield OperationRunner(session, bench.bulk)


def parse_ids(values: list[str]) -> list[int]:
    ids = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            try:
                ids.append(int(part))
            except ValueError:
                raise InvalidArgument(f"ids must be integers, got {part!r}") from None
    return ids


class BenchRouter(APIRouter):
    def __init__(self,
                 settings: Settings | None = None,
                 prefix: str = "/bench",
                 **kwargs):
        super().__init__(prefix=prefix, tags=["bench"], responses=ERROR_RESPONSES, **kwargs)

        self.settings = settings or get_settings()
        logger.info("Initializing BenchRouter with %s bulk provider", self.settings.bulk_provider)

        self.initialized = False
        self.engine: AsyncEngine | None = None
        self.sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self.bulk: BulkOperations | None = None
        self._pool: asyncpg.Pool | None = None

        self.mount()

    async def _open_pool(self) -> asyncpg.Pool | None:
        if not self.settings.is_postgres or self.settings.bulk_provider == "orm":
            return None
        dsn = asyncpg_dsn(self.settings.database_url)
        if self.settings.bulk_provider == "copy":
            return await asyncpg.create_pool(dsn=dsn)
        try:
            return await asyncpg.create_pool(dsn=dsn)
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.warning("Could not open asyncpg pool, falling back to the orm bulk provider: %s", e)
            return None

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        self.engine = create_engine_from_settings(self.settings)
        try:
            self.sessionmaker = make_sessionmaker(self.engine)
            self._pool = await self._open_pool()
            self.bulk = make_bulk_operations(self.settings, self._pool)

            if self.settings.create_schema:
                await create_schema(self.engine)

            app.state.bench = self
            self.initialized = True
            yield
        finally:
            self.initialized = False
            if self._pool is not None:
                await asyncio.wait_for(self._pool.close(), timeout=10)
                self._pool = None
            await self.engine.dispose()

    def mount(self):
        self.add_api_route(
            "/insert-naive",
            self.insert_naive,
            methods=["POST"],
            response_model=BenchmarkResult,
            summary="Insert generated records through the ORM unit of work",
        )
        self.add_api_route(
            "/insert-bulk",
            self.insert_bulk,
            methods=["POST"],
            response_model=BenchmarkResult,
            summary="Insert generated records through the bulk provider",
        )
        self.add_api_route(
            "/update-naive",
            self.update_naive,
            methods=["PUT"],
            response_model=BenchmarkResult,
            summary="Update every stored record through the ORM unit of work",
        )
        self.add_api_route(
            "/update-bulk",
            self.update_bulk,
            methods=["PUT"],
            response_model=BenchmarkResult,
            summary="Update every stored record through the bulk provider",
        )
        self.add_api_route(
            "/read-all",
            self.read_all,
            methods=["GET"],
            response_model=BenchmarkResult,
            summary="Fetch every stored record",
        )
        self.add_api_route(
            "/read-filtered",
            self.read_filtered,
            methods=["GET"],
            response_model=BenchmarkResult,
            summary="Fetch records by id through the bulk provider",
        )
        self.add_api_route(
            "/compare",
            self.compare_results,
            methods=["POST"],
            response_model=BenchmarkResult,
            summary="Annotate a candidate result with its speed-up over a baseline",
        )
        self.add_api_route(
            "/records",
            self.reset,
            methods=["DELETE"],
            status_code=status.HTTP_204_NO_CONTENT,
            summary="Drop and recreate the benchmark table",
        )

    async def insert_naive(
        self,
        count: int | None = Query(None, description="Number of records to generate"),
        runner: OperationRunner = Depends(get_runner),
    ) -> BenchmarkResult:
        records = generate(self.settings.naive_insert_count if count is None else count)
        return report_outcome(await runner.insert_naive(records))

    async def insert_bulk(
        self,
        count: int | None = Query(None, description="Number of records to generate"),
        auto_map_output_direction: bool = Query(True, alias="autoMapOutputDirection"),
        batch_size: int | None = Query(None, alias="batchSize", ge=1),
        runner: OperationRunner = Depends(get_runner),
    ) -> BenchmarkResult:
        records = generate(self.settings.bulk_insert_count if count is None else count)
        options = BulkOptions(auto_map_output_direction=auto_map_output_direction, batch_size=batch_size)
        outcome = await runner.insert_bulk(records, options)
        label = "Bulk insert" if auto_map_output_direction else "Bulk insert without output mapping"
        return report_outcome(outcome, label)

    async def update_naive(self, runner: OperationRunner = Depends(get_runner)) -> BenchmarkResult:
        existing = await runner.read_all()
        return report_outcome(await runner.update_naive(existing.records))

    async def update_bulk(self, runner: OperationRunner = Depends(get_runner)) -> BenchmarkResult:
        existing = await runner.read_all()
        return report_outcome(await runner.update_bulk(existing.records))

    async def read_all(self, runner: OperationRunner = Depends(get_runner)) -> BenchmarkResult:
        return report_outcome(await runner.read_all())

    async def read_filtered(
        self,
        ids: list[str] = Query(default=[], description="Record ids, repeated or comma separated"),
        runner: OperationRunner = Depends(get_runner),
    ) -> BenchmarkResult:
        return report_outcome(await runner.read_filtered(parse_ids(ids)))

    async def compare_results(self, request: CompareRequest) -> BenchmarkResult:
        return annotate(request.candidate, compare(request.baseline, request.candidate))

    async def reset(self) -> None:
        logger.warning("Resetting benchmark table")
        try:
            await reset_schema(self.engine)
        except SQLAlchemyError as e:
            raise StoreError("reset", 0, str(e)) from e
