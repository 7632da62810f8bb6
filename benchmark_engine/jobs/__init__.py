"""
Background jobs for the benchmark analysis engine.

- recalculate_benchmark: Recompute and republish all top-performer and
  correlation results of a benchmark (idempotent, last writer wins).

Usage:
    from benchmark_engine.jobs import recalculate_benchmark

    summary = await recalculate_benchmark("bm_global_2025", by_year=True)
"""

from benchmark_engine.jobs.recalculate_benchmark import (
    RecalculationSummary,
    recalculate_benchmark,
)


__all__ = [
    "RecalculationSummary",
    "recalculate_benchmark",
]
