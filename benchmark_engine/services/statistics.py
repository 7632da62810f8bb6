"""
Descriptive statistics over benchmark assessment records.

This is the leaf of the analysis engine: every higher component (grouped
statistics, top performers, comparisons) derives its numbers from the
functions in this module.

Definitions:
    - Only non-null, finite values of the metric participate.
    - stdDev is the population standard deviation (ddof=0).
    - Percentiles use linear interpolation between order statistics
      (position (n - 1) * p / 100, the R-7 / numpy "linear" method), so
      p50 always equals the median.
    - Zero values yield an explicit NoData result instead of zeros.

The results are independent of record order.

Dependencies:
    - numpy: Vectorized mean, std and percentile computation

Usage:
    from benchmark_engine.services.statistics import compute_statistics

    stats = compute_statistics(records, "eqTotal")
    if stats.status == "ok":
        print(stats.mean, stats.p90)
"""

import logging
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError
from benchmark_engine.core.workers import parallel_map
from benchmark_engine.models.catalog import STATISTIC_METRIC_KEYS, is_statistic_metric
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    MetricStats,
    NoData,
    OverallStat,
)

logger = logging.getLogger(__name__)


# Percentile ranks reported on every MetricStats
PERCENTILE_RANKS = (10, 25, 50, 75, 90, 95)


# =============================================================================
# Value Extraction
# =============================================================================


def extract_metric_values(
    records: Iterable[AssessmentRecord],
    metric_key: str,
) -> np.ndarray:
    """
    Collect the non-null, finite values of a metric.

    Args:
        records: Assessment records.
        metric_key: AssessmentRecord attribute name.

    Returns:
        1-D float64 array, in record order.
    """
    values = [getattr(record, metric_key) for record in records]
    array = np.array([v for v in values if v is not None], dtype=np.float64)
    return array[np.isfinite(array)]


def percentile(values: Union[Sequence[float], np.ndarray], p: float) -> float:
    """
    Linear-interpolation percentile of a non-empty sample.

    Args:
        values: Sample values (any order).
        p: Percentile rank in [0, 100].

    Returns:
        The interpolated percentile.

    Raises:
        ValueError: If values is empty or p is outside [0, 100].

    Example:
        >>> percentile([1, 2, 3, 4, 5, 6, 7, 8, 9, 10], 90)
        9.1
    """
    array = np.asarray(values, dtype=np.float64)
    if array.size == 0:
        raise ValueError("percentile of an empty sample is undefined")
    if not 0 <= p <= 100:
        raise ValueError(f"percentile rank must be within [0, 100], got {p}")
    return float(np.percentile(array, p, method="linear"))


# =============================================================================
# Statistics
# =============================================================================


def stats_from_values(
    values: Union[Sequence[float], np.ndarray],
    metric_key: str,
) -> Union[MetricStats, NoData]:
    """
    Compute MetricStats over already-extracted values.

    Args:
        values: Finite sample values.
        metric_key: Metric the values belong to (echoed on the result).

    Returns:
        MetricStats, or NoData when values is empty.
    """
    array = np.asarray(values, dtype=np.float64)
    if array.size == 0:
        return NoData(metricKey=metric_key)

    lo = float(np.min(array))
    hi = float(np.max(array))
    median = float(np.median(array))
    p10, p25, _, p75, p90, p95 = (
        float(v) for v in np.percentile(array, PERCENTILE_RANKS, method="linear")
    )

    # Accumulated rounding can push the mean of identical values past max
    mean = min(max(float(np.mean(array)), lo), hi)

    return MetricStats(
        metricKey=metric_key,
        n=int(array.size),
        mean=mean,
        median=median,
        stdDev=float(np.std(array)),
        min=lo,
        max=hi,
        p10=p10,
        p25=p25,
        p50=median,
        p75=p75,
        p90=p90,
        p95=p95,
    )


def compute_statistics(
    records: Sequence[AssessmentRecord],
    metric_key: str,
) -> Union[MetricStats, NoData]:
    """
    Compute descriptive statistics of one metric over a record set.

    Args:
        records: Assessment records of one benchmark (or a subset).
        metric_key: A numeric metric from the catalogue (eqTotal, pillars,
            competencies, outcomes, talents, reliabilityIndex).

    Returns:
        MetricStats when at least one value is present, otherwise NoData.

    Raises:
        AnalysisValidationError: If metric_key is not a numeric metric.
    """
    if not is_statistic_metric(metric_key):
        raise AnalysisValidationError(f"Unknown metric '{metric_key}'", field="metric")

    return stats_from_values(extract_metric_values(records, metric_key), metric_key)


def validate_metric_keys(metric_keys: Optional[Sequence[str]]) -> List[str]:
    """
    Resolve an optional metric subset against the statistics catalogue.

    Returns the full catalogue when metric_keys is None. Duplicates are
    dropped, keeping first occurrence.

    Raises:
        AnalysisValidationError: If a key is unknown or the subset is empty.
    """
    if metric_keys is None:
        return list(STATISTIC_METRIC_KEYS)

    unknown = [key for key in metric_keys if not is_statistic_metric(key)]
    if unknown:
        raise AnalysisValidationError(
            f"Unknown metric(s): {', '.join(unknown)}", field="metrics"
        )
    resolved = list(dict.fromkeys(metric_keys))
    if not resolved:
        raise AnalysisValidationError("At least one metric is required", field="metrics")
    return resolved


def compute_overall_statistics(
    records: Sequence[AssessmentRecord],
    metric_keys: Optional[Sequence[str]] = None,
    policy: Optional[AnalysisPolicy] = None,
) -> List[OverallStat]:
    """
    Compute statistics for every catalogue metric over a whole benchmark.

    Metrics are computed independently on the worker pool; the output
    follows catalogue (or requested) order.

    Args:
        records: Assessment records of the benchmark.
        metric_keys: Optional subset of metrics.
        policy: Analysis policy (only max_workers is used here).

    Returns:
        One OverallStat per metric.
    """
    policy = policy or AnalysisPolicy()
    keys = validate_metric_keys(metric_keys)

    stats = parallel_map(
        lambda key: stats_from_values(extract_metric_values(records, key), key),
        keys,
        max_workers=policy.max_workers,
    )

    logger.info(f"Computed statistics for {len(keys)} metrics over {len(records)} records")
    return [OverallStat(metricKey=key, stats=s) for key, s in zip(keys, stats)]
