"""
Top Performer Extraction Service.

Identifies the top cohort of a benchmark for one outcome (records scoring at
or above the outcome's P90 by default) and ranks which competencies and
brain talents distinguish that cohort from the rest of the population.

Algorithm Overview:
    1. Keep records with a value for the outcome (the population).
    2. threshold = percentile(outcome values, top_performer_percentile).
    3. top = outcome >= threshold; rest = everyone else in the population.
    4. For each competency and talent, Cohen's d between top and rest:
           d = (mean_top - mean_rest) / pooled_sd
           pooled_sd = sqrt((SS_top + SS_rest) / (n_top + n_rest - 2))
       where SS is the sum of squared deviations from the group mean
       (equivalent to pooling the sample variances).
    5. A dimension is significant when |d| >= effect_size_threshold and the
       top cohort has at least min_significant_sample members.
    6. Rank by |d| descending; the first top_dimensions_limit entries are the
       topCompetencies of the result.

Key Outputs:
    - rankedDimensions / topCompetencies / topTalents
    - competencyProfile: cohort means of pillars and competencies
    - commonPatterns / talentPatterns: frequently co-occurring strengths
    - confidenceLevel: high / medium / low from the cohort size
    - effectInterpretation / ci95 per dimension
    - warnings: undersized population or cohort
    - insights: short codes from generate_top_performer_insights

An optional PopulationFilter restricts the population before the percentile
is taken, so "top" is relative to the filtered group.

An outcome without values yields a result with status "no_data". It is a
result, not an error, and is published like any other.

Dependencies:
    - numpy: Group means and squared deviations
"""

import logging
from collections import Counter, defaultdict
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError
from benchmark_engine.core.workers import parallel_map
from benchmark_engine.models.catalog import (
    COMPETENCY_KEYS,
    OUTCOME_KEYS,
    PILLAR_KEYS,
    TALENT_KEYS,
    TOP_PERFORMER_DIMENSION_KEYS,
    is_outcome,
)
from benchmark_engine.models.enums import (
    ConfidenceLevel,
    DimensionKind,
    EffectMagnitude,
    ResultStatus,
)
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    CompetencyPattern,
    DimensionEffect,
    PopulationFilter,
    TopPerformerResult,
)
from benchmark_engine.services.statistics import (
    extract_metric_values,
    percentile,
    stats_from_values,
)

logger = logging.getLogger(__name__)


# Number of strongest scores per person considered for pattern detection
PATTERN_TOP_N: int = 3

# Cohen's conventional bands for |d|
EFFECT_SMALL: float = 0.2
EFFECT_MEDIUM: float = 0.5
EFFECT_LARGE: float = 0.8

# Two-sided 95 % normal quantile
Z_95: float = 1.96

# Insight thresholds: score points, percent of cohort, talent score
INSIGHT_MIN_MEAN_GAP: float = 5.0
INSIGHT_MIN_PATTERN_FREQUENCY: int = 30
INSIGHT_MIN_TALENT_SCORE: float = 70.0


# =============================================================================
# Effect Size
# =============================================================================


def cohens_d(top_values: np.ndarray, rest_values: np.ndarray) -> Optional[float]:
    """
    Cohen's d between two samples using the pooled sample standard deviation.

    Args:
        top_values: Values of the top cohort.
        rest_values: Values of the comparison cohort.

    Returns:
        The effect size, or None when it is undefined (an empty group, fewer
        than two total degrees of freedom, or zero pooled deviation).

    Example:
        >>> cohens_d(np.array([4.0, 6.0]), np.array([1.0, 3.0]))
        2.1213203435596424
    """
    n_top = top_values.size
    n_rest = rest_values.size
    if n_top == 0 or n_rest == 0 or n_top + n_rest < 3:
        return None

    mean_top = float(np.mean(top_values))
    mean_rest = float(np.mean(rest_values))
    ss_top = float(np.sum((top_values - mean_top) ** 2))
    ss_rest = float(np.sum((rest_values - mean_rest) ** 2))

    pooled_sd = np.sqrt((ss_top + ss_rest) / (n_top + n_rest - 2))
    if not np.isfinite(pooled_sd) or pooled_sd <= 1e-12:
        return None

    return float((mean_top - mean_rest) / pooled_sd)


def interpret_effect_size(d: float) -> EffectMagnitude:
    """
    Label an effect size with Cohen's conventional magnitude bands.

    Args:
        d: Cohen's d; the sign is ignored.

    Returns:
        NEGLIGIBLE below 0.2, SMALL below 0.5, MEDIUM below 0.8, else LARGE.

    Example:
        >>> interpret_effect_size(-0.65)
        <EffectMagnitude.MEDIUM: 'medium'>
    """
    magnitude = abs(d)
    if magnitude < EFFECT_SMALL:
        return EffectMagnitude.NEGLIGIBLE
    if magnitude < EFFECT_MEDIUM:
        return EffectMagnitude.SMALL
    if magnitude < EFFECT_LARGE:
        return EffectMagnitude.MEDIUM
    return EffectMagnitude.LARGE


def confidence_interval_95(values: np.ndarray) -> Tuple[float, float, Tuple[float, float]]:
    """
    Normal-approximation 95 % confidence interval of a sample mean.

    Args:
        values: Non-empty sample.

    Returns:
        (std_dev, std_error, (low, high)). The standard deviation uses
        ddof=1 and is 0 for a single value, which collapses the interval
        onto the mean.

    Example:
        >>> confidence_interval_95(np.array([5.0]))
        (0.0, 0.0, (5.0, 5.0))
    """
    mean = float(np.mean(values))
    std_dev = float(np.std(values, ddof=1)) if values.size > 1 else 0.0
    std_error = std_dev / float(np.sqrt(values.size))
    margin = Z_95 * std_error
    return std_dev, std_error, (mean - margin, mean + margin)


def confidence_for_sample(sample_size: int, policy: AnalysisPolicy) -> ConfidenceLevel:
    """
    Map a top cohort size to its confidence band.

    Args:
        sample_size: Number of top performers.
        policy: Supplies confidence_high_sample and confidence_medium_sample.

    Returns:
        HIGH at or above the high bound, MEDIUM at or above the medium
        bound, LOW otherwise.

    Example:
        >>> confidence_for_sample(45, AnalysisPolicy())
        <ConfidenceLevel.MEDIUM: 'medium'>
    """
    if sample_size >= policy.confidence_high_sample:
        return ConfidenceLevel.HIGH
    if sample_size >= policy.confidence_medium_sample:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _dimension_kind(key: str) -> DimensionKind:
    return DimensionKind.TALENT if key in TALENT_KEYS else DimensionKind.COMPETENCY


def rank_dimensions(
    top: Sequence[AssessmentRecord],
    rest: Sequence[AssessmentRecord],
    policy: AnalysisPolicy,
    max_workers: Optional[int] = None,
) -> List[DimensionEffect]:
    """
    Compute and rank the effect size of every competency and talent.

    Dimensions whose effect size is undefined are omitted. Each entry also
    carries the magnitude label of its effect and the 95 % interval of the
    top cohort mean.

    Returns:
        DimensionEffect entries sorted by |effectSize| descending, then key.
    """

    def effect_for(key: str) -> Optional[DimensionEffect]:
        top_values = extract_metric_values(top, key)
        rest_values = extract_metric_values(rest, key)
        d = cohens_d(top_values, rest_values)
        if d is None:
            return None
        std_dev, std_error, ci95 = confidence_interval_95(top_values)
        return DimensionEffect(
            key=key,
            kind=_dimension_kind(key),
            effectSize=d,
            effectInterpretation=interpret_effect_size(d),
            isSignificant=(
                abs(d) >= policy.effect_size_threshold
                and len(top) >= policy.min_significant_sample
            ),
            topMean=float(np.mean(top_values)),
            restMean=float(np.mean(rest_values)),
            topStdDev=std_dev,
            topStdError=std_error,
            ci95=ci95,
        )

    effects = parallel_map(effect_for, TOP_PERFORMER_DIMENSION_KEYS, max_workers=max_workers)
    ranked = [effect for effect in effects if effect is not None]
    ranked.sort(key=lambda e: (-abs(e.effectSize), e.key))
    return ranked


# =============================================================================
# Patterns
# =============================================================================


def detect_patterns(
    top: Sequence[AssessmentRecord],
    outcome_key: str,
    dimension_keys: Sequence[str],
    min_frequency: int,
    limit: int,
) -> List[CompetencyPattern]:
    """
    Find pairs of dimensions that often appear together among each top
    performer's three highest scores.

    Args:
        top: Top cohort records.
        outcome_key: Outcome used for the average outcome of each pattern.
        dimension_keys: Dimensions considered (competencies or talents).
        min_frequency: Minimum percent of the cohort sharing a pair.
        limit: Maximum number of patterns returned.

    Returns:
        Patterns by frequency descending, then pair keys.
    """
    if not top:
        return []

    pair_counts: Counter = Counter()
    pair_outcomes: Dict[Tuple[str, ...], List[float]] = defaultdict(list)

    for record in top:
        scored = [
            (getattr(record, key), key)
            for key in dimension_keys
            if getattr(record, key) is not None
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))
        strongest = sorted(key for _, key in scored[:PATTERN_TOP_N])

        for pair in combinations(strongest, 2):
            pair_counts[pair] += 1
            pair_outcomes[pair].append(getattr(record, outcome_key))

    patterns = []
    for pair, count in pair_counts.items():
        frequency = count / len(top) * 100
        if frequency >= min_frequency:
            patterns.append(CompetencyPattern(
                keys=list(pair),
                frequency=int(round(frequency)),
                avgOutcome=float(np.mean(pair_outcomes[pair])),
            ))

    patterns.sort(key=lambda p: (-p.frequency, p.keys))
    return patterns[:limit]


def competency_profile(top: Sequence[AssessmentRecord]) -> Dict[str, float]:
    """Mean pillar and competency scores of the top cohort (present keys only)."""
    profile: Dict[str, float] = {}
    for key in PILLAR_KEYS + COMPETENCY_KEYS:
        values = extract_metric_values(top, key)
        if values.size:
            profile[key] = float(np.mean(values))
    return profile


# =============================================================================
# Warnings and Insights
# =============================================================================


def population_warnings(
    outcome_key: str,
    population_size: int,
    top_size: int,
    policy: AnalysisPolicy,
) -> List[str]:
    """
    Flag populations and cohorts too small to trust.

    Args:
        outcome_key: Outcome the cohort was cut on; prefixes each message.
        population_size: Records with a value for the outcome.
        top_size: Records in the top cohort.
        policy: Supplies min_population_sample and min_significant_sample.

    Returns:
        Zero, one or two human-readable warnings.

    Example:
        >>> population_warnings("health", 80, 8, AnalysisPolicy())
        ['health: population below minimum sample (80 < 100)',
         'health: top cohort below minimum sample (8 < 30)']
    """
    warnings = []
    if population_size < policy.min_population_sample:
        warnings.append(
            f"{outcome_key}: population below minimum sample "
            f"({population_size} < {policy.min_population_sample})"
        )
    if population_size and top_size < policy.min_significant_sample:
        warnings.append(
            f"{outcome_key}: top cohort below minimum sample "
            f"({top_size} < {policy.min_significant_sample})"
        )
    return warnings


def generate_top_performer_insights(
    result: TopPerformerResult,
    policy: Optional[AnalysisPolicy] = None,
) -> List[str]:
    """
    Derive short insight codes from a generated profile.

    Codes are machine-readable so clients can localise them:

        top_competency:<key>:<topMean - restMean, 1 decimal>
            The highest-ranked competency leads the rest by more than 5 points.
        pattern:<keyA>+<keyB>:<frequency>
            The most frequent competency pair is shared by at least 30 % of
            the cohort.
        talent:<key>:<topMean, 1 decimal>
            The highest-ranked talent averages above 70 in the cohort.

    A cohort smaller than min_significant_sample yields no insights.

    Args:
        result: Profile from generate_top_performers.
        policy: Analysis thresholds; defaults to AnalysisPolicy().

    Returns:
        Insight codes in the order above.
    """
    policy = policy or AnalysisPolicy()
    if result.status != ResultStatus.OK or result.sampleSize < policy.min_significant_sample:
        return []

    insights = []

    competency = next(
        (e for e in result.rankedDimensions if e.kind == DimensionKind.COMPETENCY),
        None,
    )
    if competency is not None:
        gap = competency.topMean - competency.restMean
        if gap > INSIGHT_MIN_MEAN_GAP:
            insights.append(f"top_competency:{competency.key}:{gap:.1f}")

    if result.commonPatterns:
        pattern = result.commonPatterns[0]
        if pattern.frequency >= INSIGHT_MIN_PATTERN_FREQUENCY:
            insights.append(f"pattern:{'+'.join(pattern.keys)}:{pattern.frequency}")

    if result.topTalents:
        talent = result.topTalents[0]
        if talent.topMean > INSIGHT_MIN_TALENT_SCORE:
            insights.append(f"talent:{talent.key}:{talent.topMean:.1f}")

    return insights


# =============================================================================
# Generation
# =============================================================================


def _generate(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    outcome_key: str,
    policy: AnalysisPolicy,
    dimension_workers: Optional[int],
    population_filter: Optional[PopulationFilter] = None,
) -> TopPerformerResult:
    filters = population_filter.active_filters() if population_filter else {}
    population = [
        r for r in records
        if getattr(r, outcome_key) is not None
        and np.isfinite(getattr(r, outcome_key))
        and (population_filter is None or population_filter.matches(r))
    ]

    if not population:
        logger.info(f"No {outcome_key} values in benchmark {benchmark_id} (filters {filters})")
        return TopPerformerResult(
            benchmarkId=benchmark_id,
            outcomeKey=outcome_key,
            status=ResultStatus.NO_DATA,
            percentileThreshold=policy.top_performer_percentile,
            filters=filters,
            warnings=population_warnings(outcome_key, 0, 0, policy),
        )

    outcome_values = extract_metric_values(population, outcome_key)
    threshold = percentile(outcome_values, policy.top_performer_percentile)

    top = [r for r in population if getattr(r, outcome_key) >= threshold]
    rest = [r for r in population if getattr(r, outcome_key) < threshold]

    ranked = rank_dimensions(top, rest, policy, max_workers=dimension_workers)
    talents = [e for e in ranked if e.kind == DimensionKind.TALENT]

    result = TopPerformerResult(
        benchmarkId=benchmark_id,
        outcomeKey=outcome_key,
        status=ResultStatus.OK,
        percentileThreshold=policy.top_performer_percentile,
        thresholdValue=threshold,
        sampleSize=len(top),
        totalPopulation=len(population),
        confidenceLevel=confidence_for_sample(len(top), policy),
        topCompetencies=ranked[:policy.top_dimensions_limit],
        topTalents=talents[:policy.top_dimensions_limit],
        rankedDimensions=ranked,
        competencyProfile=competency_profile(top),
        commonPatterns=detect_patterns(
            top, outcome_key, COMPETENCY_KEYS,
            policy.pattern_min_frequency, policy.pattern_limit,
        ),
        talentPatterns=detect_patterns(
            top, outcome_key, TALENT_KEYS,
            policy.talent_pattern_min_frequency, policy.talent_pattern_limit,
        ),
        outcomeStats=stats_from_values(outcome_values, outcome_key),
        filters=filters,
        warnings=population_warnings(outcome_key, len(population), len(top), policy),
    )
    result.insights = generate_top_performer_insights(result, policy)

    logger.info(
        f"Top performers for {benchmark_id}/{outcome_key}: "
        f"{len(top)} of {len(population)} (threshold {threshold:.2f}, "
        f"{sum(e.isSignificant for e in ranked)} significant dimensions)"
    )
    return result


def generate_top_performers(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    outcome_key: str,
    policy: Optional[AnalysisPolicy] = None,
    population_filter: Optional[PopulationFilter] = None,
) -> TopPerformerResult:
    """
    Generate the top-performer profile of one outcome.

    Args:
        records: Assessment records of the benchmark.
        benchmark_id: Benchmark the records belong to.
        outcome_key: One of the twelve outcomes.
        policy: Analysis thresholds; defaults to AnalysisPolicy().
        population_filter: Optional demographic filter; the percentile and
            the comparison group are then computed within the filtered
            population only, and the result's `filters` echo it.

    Returns:
        TopPerformerResult (status "no_data" if the outcome has no values).

    Raises:
        AnalysisValidationError: If outcome_key is not an outcome.
    """
    policy = policy or AnalysisPolicy()
    if not is_outcome(outcome_key):
        raise AnalysisValidationError(f"Unknown outcome '{outcome_key}'", field="outcome")

    return _generate(
        records, benchmark_id, outcome_key, policy, policy.max_workers, population_filter,
    )


def generate_all_top_performers(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    policy: Optional[AnalysisPolicy] = None,
    population_filter: Optional[PopulationFilter] = None,
) -> List[TopPerformerResult]:
    """
    Generate top-performer profiles for every outcome.

    Outcomes are fanned out over the worker pool; each outcome ranks its
    dimensions inline.

    Returns:
        One result per outcome, in catalogue order.
    """
    policy = policy or AnalysisPolicy()
    return parallel_map(
        lambda outcome: _generate(records, benchmark_id, outcome, policy, 1, population_filter),
        OUTCOME_KEYS,
        max_workers=policy.max_workers,
    )
