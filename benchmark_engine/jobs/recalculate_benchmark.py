"""
Benchmark Recalculation Job.

Recomputes every derived result of a benchmark (top performers for all
twelve outcomes, and correlations) from its current record set and publishes
them, replacing whatever was published before.

Idempotency Guarantees:
- Results are computed completely before anything is written.
- Each result family is published in one transaction that deletes the
  previous rows and inserts the new ones, so a re-run (or two concurrent
  runs) leaves exactly one complete result set: last writer wins.
- A cancelled run publishes nothing or leaves the previous set intact.

Usage:
    from benchmark_engine.jobs.recalculate_benchmark import recalculate_benchmark

    summary = await recalculate_benchmark("bm_global_2025")

    # From the command line
    python -m benchmark_engine.jobs.recalculate_benchmark bm_global_2025 --by-year
"""

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from benchmark_engine.core.config import AnalysisPolicy, get_settings
from benchmark_engine.core.database import close_db, get_db_pool
from benchmark_engine.models.enums import ResultStatus
from benchmark_engine.services.correlations import calculate_correlations
from benchmark_engine.services.repository import BenchmarkRepository
from benchmark_engine.services.top_performers import generate_all_top_performers

logger = logging.getLogger(__name__)


# =============================================================================
# Result Model
# =============================================================================

@dataclass
class RecalculationSummary:
    """
    Outcome of one recalculation run.

    Attributes:
        benchmark_id: Recalculated benchmark.
        total_records: Records the results were computed from.
        top_performer_results: Top-performer results published.
        outcomes_without_data: Outcomes published with status "no_data".
        correlations: Correlation results published.
        duration_seconds: Wall-clock duration of the run.
    """
    benchmark_id: str
    total_records: int = 0
    top_performer_results: int = 0
    outcomes_without_data: List[str] = field(default_factory=list)
    correlations: int = 0
    duration_seconds: float = 0.0


# =============================================================================
# Job
# =============================================================================

async def recalculate_benchmark(
    benchmark_id: str,
    repository: Optional[BenchmarkRepository] = None,
    policy: Optional[AnalysisPolicy] = None,
    by_year: bool = False,
) -> RecalculationSummary:
    """
    Recompute and republish all derived results of a benchmark.

    Args:
        benchmark_id: Benchmark to recalculate; must be READY.
        repository: Data access; defaults to a repository over the shared pool.
        policy: Analysis thresholds; defaults to the configured policy.
        by_year: Also publish per-year correlations.

    Returns:
        RecalculationSummary of what was published.

    Raises:
        BenchmarkNotFoundError: If the benchmark does not exist.
        BenchmarkNotReadyError: If it is not READY.
    """
    started = time.monotonic()
    if repository is None:
        repository = BenchmarkRepository(await get_db_pool())
    if policy is None:
        policy = get_settings().analysis_policy()

    await repository.load_ready_benchmark(benchmark_id)
    records = await repository.fetch_records(benchmark_id)
    logger.info(f"Recalculating benchmark {benchmark_id} from {len(records)} records")

    top_performers = await run_in_threadpool(
        generate_all_top_performers, records, benchmark_id, policy
    )
    correlations = await run_in_threadpool(
        calculate_correlations, records, benchmark_id, None, by_year, policy
    )

    await repository.replace_top_performers(benchmark_id, top_performers)
    await repository.replace_correlations(benchmark_id, correlations)

    summary = RecalculationSummary(
        benchmark_id=benchmark_id,
        total_records=len(records),
        top_performer_results=len(top_performers),
        outcomes_without_data=[
            result.outcomeKey for result in top_performers
            if result.status == ResultStatus.NO_DATA
        ],
        correlations=len(correlations),
        duration_seconds=time.monotonic() - started,
    )
    logger.info(
        f"Recalculated {benchmark_id}: {summary.top_performer_results} top performer results, "
        f"{summary.correlations} correlations in {summary.duration_seconds:.1f}s"
    )
    return summary


# =============================================================================
# Command Line Entry Point
# =============================================================================

async def _run(benchmark_id: str, by_year: bool) -> RecalculationSummary:
    try:
        return await recalculate_benchmark(benchmark_id, by_year=by_year)
    finally:
        await close_db()


def main(argv: Optional[List[str]] = None) -> RecalculationSummary:
    parser = argparse.ArgumentParser(
        description="Recompute top performers and correlations of a benchmark."
    )
    parser.add_argument("benchmark_id", help="Benchmark to recalculate")
    parser.add_argument(
        "--by-year",
        action="store_true",
        help="Also publish per-year correlations",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(_run(args.benchmark_id, args.by_year))


if __name__ == "__main__":
    main()
