"""
Benchmark repository: data access for records, metadata and published results.

The engine functions are pure; this class is the only code that talks to
PostgreSQL. It reads the benchmark metadata and assessment records written by
the ingestion pipeline and publishes the derived top-performer and
correlation results.

Publication replaces the previous results of a benchmark inside a single
transaction (delete, then insert), so readers see either the old set or the
new set, and re-running a recomputation is idempotent.

Usage:
    pool = await get_db_pool()
    repository = BenchmarkRepository(pool)

    benchmark = await repository.load_ready_benchmark("bm_1")
    records = await repository.fetch_records("bm_1")
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from asyncpg import Pool

from benchmark_engine.core.errors import BenchmarkNotFoundError, BenchmarkNotReadyError
from benchmark_engine.models.enums import BenchmarkStatus
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    Benchmark,
    CorrelationResult,
    TopPerformerResult,
)
from benchmark_engine.sql.benchmark_queries import (
    DELETE_CORRELATIONS_QUERY,
    DELETE_TOP_PERFORMER_FOR_OUTCOME_QUERY,
    DELETE_TOP_PERFORMERS_QUERY,
    INSERT_CORRELATION_QUERY,
    INSERT_TOP_PERFORMER_QUERY,
    SELECT_CORRELATIONS_QUERY,
    SELECT_TOP_PERFORMER_QUERY,
    SELECT_TOP_PERFORMERS_QUERY,
    get_benchmark_meta_query,
    get_benchmark_records_query,
)

logger = logging.getLogger(__name__)


class BenchmarkRepository:
    """asyncpg-backed access to benchmark data."""

    def __init__(self, pool: Pool):
        self.pool = pool

    # =========================================================================
    # Reads
    # =========================================================================

    async def fetch_benchmark_meta(self, benchmark_id: str) -> Optional[Benchmark]:
        """Return the benchmark metadata, or None if the id is unknown."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(get_benchmark_meta_query(), benchmark_id)
        if row is None:
            return None
        return Benchmark.model_validate(dict(row))

    async def load_ready_benchmark(self, benchmark_id: str) -> Benchmark:
        """
        Return the metadata of a benchmark that can be analyzed.

        Raises:
            BenchmarkNotFoundError: If the benchmark does not exist.
            BenchmarkNotReadyError: If it is not READY.
        """
        benchmark = await self.fetch_benchmark_meta(benchmark_id)
        if benchmark is None:
            raise BenchmarkNotFoundError(benchmark_id)
        if benchmark.status != BenchmarkStatus.READY:
            raise BenchmarkNotReadyError(benchmark_id, benchmark.status)
        return benchmark

    async def fetch_records(
        self,
        benchmark_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[AssessmentRecord]:
        """
        Fetch the assessment records of a benchmark.

        Args:
            benchmark_id: Owning benchmark.
            filters: Optional exact-match filters on categorical attributes.

        Returns:
            Records ordered by id.
        """
        query, args = get_benchmark_records_query(benchmark_id, filters)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *args)

        records = [AssessmentRecord.model_validate(dict(row)) for row in rows]
        logger.debug(f"Fetched {len(records)} records for benchmark {benchmark_id}")
        return records

    async def fetch_top_performer(
        self,
        benchmark_id: str,
        outcome_key: str,
    ) -> Optional[TopPerformerResult]:
        """Return the published result for an outcome, or None if never generated."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(SELECT_TOP_PERFORMER_QUERY, benchmark_id, outcome_key)
        if row is None:
            return None
        return TopPerformerResult.model_validate_json(row["payload"])

    async def fetch_top_performers(self, benchmark_id: str) -> List[TopPerformerResult]:
        """Return every published top-performer result of a benchmark, by outcome key."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(SELECT_TOP_PERFORMERS_QUERY, benchmark_id)
        return [TopPerformerResult.model_validate_json(row["payload"]) for row in rows]

    async def fetch_correlations(self, benchmark_id: str) -> List[CorrelationResult]:
        """Return the published correlations of a benchmark."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(SELECT_CORRELATIONS_QUERY, benchmark_id)
        return [CorrelationResult.model_validate(dict(row)) for row in rows]

    # =========================================================================
    # Publication
    # =========================================================================

    async def replace_top_performers(
        self,
        benchmark_id: str,
        results: Sequence[TopPerformerResult],
    ) -> int:
        """
        Replace all published top-performer results of a benchmark.

        Returns:
            Number of results written.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(DELETE_TOP_PERFORMERS_QUERY, benchmark_id)
                await conn.executemany(
                    INSERT_TOP_PERFORMER_QUERY,
                    [self._top_performer_row(result) for result in results],
                )

        logger.info(f"Published {len(results)} top performer results for {benchmark_id}")
        return len(results)

    async def replace_top_performer(self, result: TopPerformerResult) -> None:
        """Replace the published result of a single outcome."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    DELETE_TOP_PERFORMER_FOR_OUTCOME_QUERY,
                    result.benchmarkId,
                    result.outcomeKey,
                )
                await conn.execute(INSERT_TOP_PERFORMER_QUERY, *self._top_performer_row(result))

        logger.info(f"Published top performers for {result.benchmarkId}/{result.outcomeKey}")

    async def replace_correlations(
        self,
        benchmark_id: str,
        results: Sequence[CorrelationResult],
    ) -> int:
        """
        Replace all published correlations of a benchmark.

        Returns:
            Number of correlations written.
        """
        rows = [
            (
                benchmark_id,
                result.competencyKey,
                result.outcomeKey,
                result.correlation,
                result.strength.value,
                result.direction.value,
                result.n,
                result.pValue,
                result.year,
            )
            for result in results
        ]
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(DELETE_CORRELATIONS_QUERY, benchmark_id)
                await conn.executemany(INSERT_CORRELATION_QUERY, rows)

        logger.info(f"Published {len(rows)} correlations for {benchmark_id}")
        return len(rows)

    @staticmethod
    def _top_performer_row(result: TopPerformerResult) -> tuple:
        return (
            result.benchmarkId,
            result.outcomeKey,
            result.status.value,
            result.sampleSize,
            result.model_dump_json(),
            result.generatedAt,
        )
