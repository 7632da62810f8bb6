"""
Competency / outcome correlation engine.

For every (predictor, outcome) pair, records with values for both metrics are
selected (pairwise deletion, so different pairs may use different subsets)
and Pearson's r is computed. Predictors are the three pillars (K, C, G) and
the eight competencies; outcomes are the twelve outcome metrics.

Classification:
    |r| <  0.3        -> weak
    0.3 <= |r| < 0.5  -> moderate
    |r| >= 0.5        -> strong
The sign is reported separately as direction (positive / negative / none).

Pairs with fewer than min_correlation_observations joint values, or with a
constant variable, have no defined coefficient and are left out of the output.

Each result also carries n and a two-sided p-value from the t distribution
with n - 2 degrees of freedom.

Dependencies:
    - numpy: Centered sums of products
    - scipy.stats: Student t survival function for the p-value
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError
from benchmark_engine.core.workers import parallel_map
from benchmark_engine.models.catalog import (
    CORRELATION_PREDICTOR_KEYS,
    OUTCOME_KEYS,
    is_outcome,
)
from benchmark_engine.models.enums import CorrelationDirection, CorrelationStrength
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    CorrelationResult,
    OutcomeCorrelations,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Coefficient
# =============================================================================


def joint_values(
    records: Sequence[AssessmentRecord],
    x_key: str,
    y_key: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """Values of two metrics over the records where both are present and finite."""
    pairs = [
        (getattr(r, x_key), getattr(r, y_key))
        for r in records
        if getattr(r, x_key) is not None and getattr(r, y_key) is not None
    ]
    if not pairs:
        return np.empty(0), np.empty(0)

    array = np.array(pairs, dtype=np.float64)
    array = array[np.isfinite(array).all(axis=1)]
    return array[:, 0], array[:, 1]


def pearson(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    """
    Pearson correlation coefficient.

    Returns:
        r clamped to [-1, 1], or None when fewer than two observations are
        given or either variable is constant.
    """
    if x.size < 2 or x.size != y.size:
        return None

    dx = x - np.mean(x)
    dy = y - np.mean(y)
    ss_x = float(np.dot(dx, dx))
    ss_y = float(np.dot(dy, dy))
    if ss_x <= 0.0 or ss_y <= 0.0:
        return None

    r = float(np.dot(dx, dy)) / float(np.sqrt(ss_x * ss_y))
    return max(-1.0, min(1.0, r))


def correlation_p_value(r: float, n: int) -> Optional[float]:
    """
    Two-sided p-value of H0: rho = 0.

    Returns None when there are no residual degrees of freedom (n <= 2) or
    the correlation is perfect.
    """
    if n <= 2 or abs(r) >= 1.0:
        return None

    df = n - 2
    t_stat = r * np.sqrt(df / (1.0 - r * r))
    return float(min(1.0, 2.0 * stats.t.sf(abs(t_stat), df)))


def classify_strength(r: float, policy: AnalysisPolicy) -> CorrelationStrength:
    """
    Band a correlation coefficient by magnitude.

    Args:
        r: Pearson coefficient; the sign is ignored.
        policy: Supplies the moderate and strong thresholds (0.3 / 0.5).

    Returns:
        STRONG at or above the strong threshold, MODERATE at or above the
        moderate one, WEAK otherwise.

    Example:
        >>> classify_strength(-0.42, AnalysisPolicy())
        <CorrelationStrength.MODERATE: 'moderate'>
    """
    magnitude = abs(r)
    if magnitude >= policy.correlation_strong_threshold:
        return CorrelationStrength.STRONG
    if magnitude >= policy.correlation_moderate_threshold:
        return CorrelationStrength.MODERATE
    return CorrelationStrength.WEAK


def classify_direction(r: float) -> CorrelationDirection:
    """
    Sign of a correlation coefficient.

    Returns:
        POSITIVE for r > 0, NEGATIVE for r < 0, NONE for exactly 0.

    Example:
        >>> classify_direction(0.0)
        <CorrelationDirection.NONE: 'none'>
    """
    if r > 0:
        return CorrelationDirection.POSITIVE
    if r < 0:
        return CorrelationDirection.NEGATIVE
    return CorrelationDirection.NONE


# =============================================================================
# Engine
# =============================================================================


def correlate_outcome(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    outcome_key: str,
    policy: AnalysisPolicy,
    year: Optional[int] = None,
) -> List[CorrelationResult]:
    """Correlate every predictor with one outcome over a record set."""
    results = []
    for predictor in CORRELATION_PREDICTOR_KEYS:
        x, y = joint_values(records, predictor, outcome_key)
        if x.size < policy.min_correlation_observations:
            continue
        r = pearson(x, y)
        if r is None:
            continue
        results.append(CorrelationResult(
            benchmarkId=benchmark_id,
            competencyKey=predictor,
            outcomeKey=outcome_key,
            correlation=r,
            strength=classify_strength(r, policy),
            direction=classify_direction(r),
            n=int(x.size),
            pValue=correlation_p_value(r, int(x.size)),
            year=year,
        ))
    return results


def resolve_outcomes(outcomes: Optional[Sequence[str]]) -> List[str]:
    """
    Validate an optional outcome subset; None means all twelve outcomes.

    Raises:
        AnalysisValidationError: If an outcome key is unknown.
    """
    if outcomes is None:
        return list(OUTCOME_KEYS)
    unknown = [key for key in outcomes if not is_outcome(key)]
    if unknown:
        raise AnalysisValidationError(
            f"Unknown outcome(s): {', '.join(unknown)}", field="outcomes"
        )
    return list(dict.fromkeys(outcomes))


def years_with_sample(
    records: Sequence[AssessmentRecord],
    min_sample: int,
) -> Dict[int, List[AssessmentRecord]]:
    """Records per assessment year, for years with at least min_sample records."""
    by_year: Dict[int, List[AssessmentRecord]] = defaultdict(list)
    for record in records:
        if record.year is not None:
            by_year[record.year].append(record)
    return {
        year: members
        for year, members in sorted(by_year.items())
        if len(members) >= min_sample
    }


def calculate_correlations(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    outcomes: Optional[Sequence[str]] = None,
    by_year: bool = False,
    policy: Optional[AnalysisPolicy] = None,
) -> List[CorrelationResult]:
    """
    Calculate predictor/outcome correlations for a benchmark.

    Args:
        records: All assessment records of the benchmark.
        benchmark_id: Benchmark the records belong to.
        outcomes: Optional outcome subset.
        by_year: Also correlate within each year having at least
            policy.min_year_sample records.
        policy: Analysis thresholds; defaults to AnalysisPolicy().

    Returns:
        All-years results (year None) followed by per-year results; within
        each block, outcome catalogue order then predictor order.

    Raises:
        AnalysisValidationError: If an outcome key is unknown.
    """
    policy = policy or AnalysisPolicy()
    outcome_keys = resolve_outcomes(outcomes)

    units: List[Tuple[Optional[int], Sequence[AssessmentRecord], str]] = [
        (None, records, outcome) for outcome in outcome_keys
    ]
    if by_year:
        for year, members in years_with_sample(records, policy.min_year_sample).items():
            units.extend((year, members, outcome) for outcome in outcome_keys)

    partials = parallel_map(
        lambda unit: correlate_outcome(unit[1], benchmark_id, unit[2], policy, year=unit[0]),
        units,
        max_workers=policy.max_workers,
    )
    results = [result for partial in partials for result in partial]

    logger.info(
        f"Calculated {len(results)} correlations for benchmark {benchmark_id} "
        f"({len(records)} records, by_year={by_year})"
    )
    return results


def group_correlations_by_outcome(
    results: Sequence[CorrelationResult],
) -> List[OutcomeCorrelations]:
    """
    Presentation view of correlations grouped by outcome.

    Outcomes keep catalogue order; within an outcome, results are sorted by
    |r| descending.
    """
    grouped: Dict[str, List[CorrelationResult]] = defaultdict(list)
    for result in results:
        grouped[result.outcomeKey].append(result)

    order = {key: index for index, key in enumerate(OUTCOME_KEYS)}
    return [
        OutcomeCorrelations(
            outcomeKey=outcome,
            correlations=sorted(
                grouped[outcome],
                key=lambda c: (-abs(c.correlation), c.competencyKey, c.year or 0),
            ),
        )
        for outcome in sorted(grouped, key=lambda key: order.get(key, len(order)))
    ]
