"""
HTTP client for a running bulkbench server.

Running this module drives the naive and bulk variants of each workload
against a server and prints every result next to its comparison with the
naive baseline::

    python -m bulkbench.client --base-url http://127.0.0.1:8000
"""

import argparse
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

import httpx

from bulkbench.logging_config import get_logger
from bulkbench.models import BenchmarkResult
from bulkbench.reporter import annotate, compare, format_result

logger = get_logger(__name__)


class BenchClient:
    """Thin async client over the /bench endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 300.0,
        prefix: str = "/bench",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.prefix = prefix
        self.transport = transport

    @asynccontextmanager
    async def client_session(self):
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
        ) as client:
            yield client

    async def call(
        self,
        client: httpx.AsyncClient,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
    ) -> BenchmarkResult:
        response = await client.request(method, f"{self.prefix}{endpoint}", params=params)
        response.raise_for_status()
        return BenchmarkResult.model_validate(response.json())

    async def insert_naive(self, client, count: Optional[int] = None) -> BenchmarkResult:
        return await self.call(client, "POST", "/insert-naive", _count(count))

    async def insert_bulk(
        self, client, count: Optional[int] = None, auto_map_output_direction: bool = True
    ) -> BenchmarkResult:
        params = _count(count)
        params["autoMapOutputDirection"] = str(auto_map_output_direction).lower()
        return await self.call(client, "POST", "/insert-bulk", params)

    async def update_naive(self, client) -> BenchmarkResult:
        return await self.call(client, "PUT", "/update-naive")

    async def update_bulk(self, client) -> BenchmarkResult:
        return await self.call(client, "PUT", "/update-bulk")

    async def read_all(self, client) -> BenchmarkResult:
        return await self.call(client, "GET", "/read-all")

    async def read_filtered(self, client, ids: List[int]) -> BenchmarkResult:
        return await self.call(client, "GET", "/read-filtered", {"ids": ",".join(str(i) for i in ids)})

    async def reset(self, client) -> None:
        response = await client.delete(f"{self.prefix}/records")
        response.raise_for_status()

    async def run_suite(self, count: int) -> List[Tuple[BenchmarkResult, List[BenchmarkResult]]]:
        """
        Run every workload pair on a fresh table.

        Returns (baseline, candidates) tuples; candidates are annotated with
        their comparison against the baseline.
        """
        pairs = []
        async with self.client_session() as client:
            await self.reset(client)
            naive = await self.insert_naive(client, count)
            await self.reset(client)
            bulk = await self.insert_bulk(client, count)
            await self.reset(client)
            unmapped = await self.insert_bulk(client, count, auto_map_output_direction=False)
            pairs.append((naive, [_annotated(naive, bulk), _annotated(naive, unmapped)]))

            update_naive = await self.update_naive(client)
            update_bulk = await self.update_bulk(client)
            pairs.append((update_naive, [_annotated(update_naive, update_bulk)]))

            read_all = await self.read_all(client)
            read_filtered = await self.read_filtered(client, list(range(1, count + 1)))
            pairs.append((read_all, [_annotated(read_all, read_filtered)]))
        return pairs


def _count(count: Optional[int]) -> Dict:
    return {} if count is None else {"count": count}


def _annotated(baseline: BenchmarkResult, candidate: BenchmarkResult) -> BenchmarkResult:
    if baseline.elapsed_ms == 0:
        return candidate
    return annotate(candidate, compare(baseline, candidate))


async def run(base_url: str, count: int) -> None:
    client = BenchClient(base_url)
    try:
        pairs = await client.run_suite(count)
    except httpx.HTTPError as e:
        logger.error("Benchmark suite failed: %s", e)
        print("Make sure the bulkbench server is running and accessible.")
        raise SystemExit(1) from e

    for baseline, candidates in pairs:
        print(format_result(baseline))
        for candidate in candidates:
            print(format_result(candidate))
        print()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the bulkbench workloads against a server")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--count", type=int, default=5000, help="Records per insert workload")
    args = parser.parse_args(argv)
    asyncio.run(run(args.base_url, args.count))


if __name__ == "__main__":
    main()
