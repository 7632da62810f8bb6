"""
N-way comparison of benchmarks, of segments within one benchmark, or of
segments cut from different benchmarks (cross segments).

All modes reduce to the same core: a list of 2 to 4 columns, each a
population of assessment records. The first column is the base.

Per metric and column:
    statistics[metric][column] = MetricStats of the column (absent if the
                                 column has no values for that metric)
Per metric and column, against the base:
    meanDiff        = mean - base mean
    meanDiffPercent = meanDiff / base mean * 100 (None when base mean is 0)
    medianDiff      = median - base median

A metric is a significant difference when the average absolute
meanDiffPercent over the non-base columns exceeds
significant_difference_percent (5 % by default).

Segment comparisons also report a summary per segment (pillar means and its
three strongest competencies). Benchmark comparisons can carry the matrix of
published top-performer profiles built by build_top_performer_matrix.
export_comparison_csv renders a result as CSV with pandas.

Dependencies:
    - pandas: CSV rendering
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError, BenchmarkNotReadyError
from benchmark_engine.core.workers import parallel_map
from benchmark_engine.models.catalog import (
    COMPARISON_METRIC_KEYS,
    COMPETENCY_KEYS,
    OUTCOME_KEYS,
    is_outcome,
    metric_label,
)
from benchmark_engine.models.enums import BenchmarkStatus, DimensionKind, ResultStatus
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    Benchmark,
    ComparisonColumn,
    ComparisonResult,
    CompetencyMean,
    CrossSegmentFilter,
    MetricDifference,
    MetricStats,
    SegmentFilter,
    SegmentSummary,
    SignificantDifference,
    TopPerformerResult,
    TopPerformerSummary,
)
from benchmark_engine.services.statistics import extract_metric_values, stats_from_values

logger = logging.getLogger(__name__)


MIN_COLUMNS: int = 2
MAX_COLUMNS: int = 4

# Competencies listed per segment summary
SEGMENT_TOP_COMPETENCIES: int = 3

# Competencies and talents listed per top-performer matrix cell
MATRIX_TOP_DIMENSIONS: int = 3

Column = Tuple[ComparisonColumn, Sequence[AssessmentRecord]]


# =============================================================================
# Validation
# =============================================================================


def validate_column_count(count: int, noun: str) -> None:
    """
    Reject comparisons with fewer than 2 or more than 4 columns.

    Args:
        count: Number of requested columns.
        noun: "benchmarks" or "segments"; used in the message and as the
            error's field.

    Raises:
        AnalysisValidationError: If count is outside 2..4.
    """
    if not MIN_COLUMNS <= count <= MAX_COLUMNS:
        raise AnalysisValidationError(
            f"Between {MIN_COLUMNS} and {MAX_COLUMNS} {noun} are required, got {count}",
            field=noun,
        )


def resolve_comparison_metrics(metric_keys: Optional[Sequence[str]]) -> List[str]:
    """
    Validate an optional metric subset against the comparison catalogue.

    Raises:
        AnalysisValidationError: If a metric is unknown or the subset is empty.
    """
    if metric_keys is None:
        return list(COMPARISON_METRIC_KEYS)

    unknown = [key for key in metric_keys if key not in COMPARISON_METRIC_KEYS]
    if unknown:
        raise AnalysisValidationError(
            f"Unknown comparison metric(s): {', '.join(unknown)}", field="metrics"
        )
    resolved = list(dict.fromkeys(metric_keys))
    if not resolved:
        raise AnalysisValidationError("At least one metric is required", field="metrics")
    return resolved


# =============================================================================
# Core
# =============================================================================


def metric_difference(base: MetricStats, other: MetricStats) -> MetricDifference:
    """
    Difference of other against base for one metric.

    Args:
        base: Stats of the base column.
        other: Stats of the compared column (may be the base itself).

    Returns:
        MetricDifference; meanDiffPercent is None when the base mean is 0.

    Example:
        >>> metric_difference(base, other)  # base mean 100, other mean 105
        MetricDifference(meanDiff=5.0, meanDiffPercent=5.0, medianDiff=4.0)
    """
    mean_diff = other.mean - base.mean
    return MetricDifference(
        meanDiff=mean_diff,
        meanDiffPercent=(mean_diff / base.mean * 100) if base.mean != 0 else None,
        medianDiff=other.median - base.median,
    )


def _column_stats(column: Column, metrics: Sequence[str]) -> Dict[str, MetricStats]:
    """Stats of each metric the column has values for; metrics without values are left out."""
    _, records = column
    stats: Dict[str, MetricStats] = {}
    for metric in metrics:
        result = stats_from_values(extract_metric_values(records, metric), metric)
        if isinstance(result, MetricStats):
            stats[metric] = result
    return stats


def compare_columns(
    columns: Sequence[Column],
    metric_keys: Optional[Sequence[str]] = None,
    mode: str = "benchmarks",
    policy: Optional[AnalysisPolicy] = None,
) -> ComparisonResult:
    """
    Compare 2 to 4 record populations metric by metric.

    Args:
        columns: (column metadata, records) pairs; the first is the base.
        metric_keys: Optional subset of the comparison catalogue.
        mode: "benchmarks", "segments" or "cross_segments".
        policy: Analysis thresholds; defaults to AnalysisPolicy().

    Returns:
        ComparisonResult. differences[metric] holds an entry for every column
        with data, the base column included (always zero against itself).

    Raises:
        AnalysisValidationError: For a wrong column count, duplicate column
            ids or unknown metrics.
    """
    policy = policy or AnalysisPolicy()
    validate_column_count(len(columns), mode)
    metrics = resolve_comparison_metrics(metric_keys)

    column_ids = [column.id for column, _ in columns]
    duplicates = sorted({cid for cid in column_ids if column_ids.count(cid) > 1})
    if duplicates:
        raise AnalysisValidationError(
            f"Duplicate comparison column(s): {', '.join(duplicates)}", field=mode
        )

    per_column = parallel_map(
        lambda column: _column_stats(column, metrics),
        columns,
        max_workers=policy.max_workers,
    )

    base_id = column_ids[0]
    statistics: Dict[str, Dict[str, MetricStats]] = {}
    differences: Dict[str, Dict[str, MetricDifference]] = {}
    significant: List[SignificantDifference] = []

    for metric in metrics:
        row = {
            cid: stats[metric]
            for cid, stats in zip(column_ids, per_column)
            if metric in stats
        }
        statistics[metric] = row

        base = row.get(base_id)
        if base is None:
            continue

        differences[metric] = {
            cid: metric_difference(base, stats) for cid, stats in row.items()
        }

        # Columns without a defined percentage count as zero difference
        percents = [
            abs(diff.meanDiffPercent)
            for cid, diff in differences[metric].items()
            if cid != base_id and diff.meanDiffPercent is not None
        ]
        avg_abs = sum(percents) / (len(column_ids) - 1)
        if avg_abs > policy.significant_difference_percent:
            significant.append(SignificantDifference(metric=metric, avgAbsDiffPercent=avg_abs))

    significant.sort(key=lambda s: (-s.avgAbsDiffPercent, s.metric))

    logger.info(
        f"Compared {len(columns)} {mode} over {len(metrics)} metrics: "
        f"{len(significant)} significant differences"
    )
    return ComparisonResult(
        mode=mode,
        baseColumn=base_id,
        columns=[column for column, _ in columns],
        metrics=metrics,
        statistics=statistics,
        differences=differences,
        significantDifferences=significant,
    )


# =============================================================================
# Modes
# =============================================================================


def compare_benchmarks(
    benchmarks: Sequence[Tuple[Benchmark, Sequence[AssessmentRecord]]],
    metric_keys: Optional[Sequence[str]] = None,
    policy: Optional[AnalysisPolicy] = None,
) -> ComparisonResult:
    """
    Compare 2 to 4 READY benchmarks; the first is the base.

    Args:
        benchmarks: (benchmark metadata, its records) pairs.
        metric_keys: Optional subset of the comparison catalogue.
        policy: Analysis thresholds.

    Raises:
        AnalysisValidationError: For a wrong count, a duplicate benchmark or
            a benchmark without records.
        BenchmarkNotReadyError: If a benchmark is not READY.
    """
    validate_column_count(len(benchmarks), "benchmarks")
    for benchmark, records in benchmarks:
        if benchmark.status != BenchmarkStatus.READY:
            raise BenchmarkNotReadyError(benchmark.id, benchmark.status)
        if not records:
            raise AnalysisValidationError(
                f"Benchmark {benchmark.id} has no records to compare",
                field="benchmarks",
            )

    columns = [
        (ComparisonColumn(id=benchmark.id, label=benchmark.name, sampleSize=len(records)), records)
        for benchmark, records in benchmarks
    ]
    return compare_columns(columns, metric_keys, mode="benchmarks", policy=policy)


def summarize_segment(
    segment: SegmentFilter,
    records: Sequence[AssessmentRecord],
    benchmark: Optional[Benchmark] = None,
) -> SegmentSummary:
    """
    Pillar means and strongest competencies of one segment.

    Args:
        segment: The segment's name and filters.
        records: Records matching the segment.
        benchmark: Source benchmark; set for cross-benchmark segments so the
            summary names where the segment was cut from.

    Returns:
        SegmentSummary with avgK / avgC / avgG (None when a pillar has no
        values) and the three competencies with the highest means, ties
        broken by key.

    Example:
        >>> summary = summarize_segment(SegmentFilter(name="Chile", country="Chile"), chile)
        >>> [c.key for c in summary.topCompetencies]
        ['EL', 'NG', 'RP']
    """

    def mean_of(key: str) -> Optional[float]:
        values = extract_metric_values(records, key)
        return float(values.mean()) if values.size else None

    competency_means = []
    for key in COMPETENCY_KEYS:
        value = mean_of(key)
        if value is not None:
            competency_means.append(CompetencyMean(key=key, mean=value))
    competency_means.sort(key=lambda c: (-c.mean, c.key))

    return SegmentSummary(
        name=segment.name,
        benchmarkId=benchmark.id if benchmark else None,
        benchmarkName=benchmark.name if benchmark else None,
        filters=segment.active_filters(),
        sampleSize=len(records),
        avgK=mean_of("K"),
        avgC=mean_of("C"),
        avgG=mean_of("G"),
        topCompetencies=competency_means[:SEGMENT_TOP_COMPETENCIES],
    )


def _segment_columns(
    segments: Sequence[Tuple[SegmentFilter, Optional[Benchmark], Sequence[AssessmentRecord]]],
    benchmark_id: Optional[str] = None,
) -> Tuple[List[Column], List[SegmentSummary]]:
    columns: List[Column] = []
    summaries: List[SegmentSummary] = []
    for segment, benchmark, records in segments:
        members = [record for record in records if segment.matches(record)]
        if not members:
            source = benchmark.id if benchmark else benchmark_id
            raise AnalysisValidationError(
                f"Segment '{segment.name}' matches no records in benchmark {source}",
                field="segments",
            )
        columns.append((
            ComparisonColumn(
                id=segment.name,
                label=segment.name,
                sampleSize=len(members),
                filters=segment.active_filters(),
                benchmarkId=benchmark.id if benchmark else None,
            ),
            members,
        ))
        summaries.append(summarize_segment(segment, members, benchmark))
    return columns, summaries


def compare_segments(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    segments: Sequence[SegmentFilter],
    metric_keys: Optional[Sequence[str]] = None,
    policy: Optional[AnalysisPolicy] = None,
) -> ComparisonResult:
    """
    Compare 2 to 4 segments of one benchmark; the first is the base.

    Args:
        records: All records of the benchmark.
        benchmark_id: Benchmark the segments are cut from.
        segments: Segment filters with unique names.
        metric_keys: Optional subset of the comparison catalogue.
        policy: Analysis thresholds.

    Raises:
        AnalysisValidationError: For a wrong count, duplicate names or a
            segment matching no record.
    """
    validate_column_count(len(segments), "segments")

    columns, summaries = _segment_columns(
        [(segment, None, records) for segment in segments], benchmark_id,
    )

    result = compare_columns(columns, metric_keys, mode="segments", policy=policy)
    result.segments = summaries
    return result


def compare_cross_segments(
    populations: Sequence[Tuple[CrossSegmentFilter, Benchmark, Sequence[AssessmentRecord]]],
    metric_keys: Optional[Sequence[str]] = None,
    policy: Optional[AnalysisPolicy] = None,
) -> ComparisonResult:
    """
    Compare 2 to 4 segments, each cut from its own benchmark.

    Segments may share a benchmark; what differs from compare_segments is
    that every column names its source, e.g. "Chile 2024" from a regional
    benchmark against "Spain 2025" from the global one.

    Args:
        populations: (segment, its benchmark, that benchmark's records)
            triples; the first is the base.
        metric_keys: Optional subset of the comparison catalogue.
        policy: Analysis thresholds.

    Returns:
        ComparisonResult with mode "cross_segments"; columns and segment
        summaries carry the source benchmark id (and name, for summaries).

    Raises:
        AnalysisValidationError: For a wrong count, duplicate names, a
            segment whose benchmarkId disagrees with its benchmark, or a
            segment matching no record.
        BenchmarkNotReadyError: If a source benchmark is not READY.
    """
    validate_column_count(len(populations), "segments")
    for segment, benchmark, _ in populations:
        if segment.benchmarkId != benchmark.id:
            raise AnalysisValidationError(
                f"Segment '{segment.name}' targets {segment.benchmarkId}, "
                f"not {benchmark.id}",
                field="segments",
            )
        if benchmark.status != BenchmarkStatus.READY:
            raise BenchmarkNotReadyError(benchmark.id, benchmark.status)

    columns, summaries = _segment_columns(populations)

    result = compare_columns(columns, metric_keys, mode="cross_segments", policy=policy)
    result.segments = summaries
    return result


# =============================================================================
# Published Top Performers
# =============================================================================


def resolve_matrix_outcomes(outcome_keys: Optional[Sequence[str]]) -> List[str]:
    """
    Validate the outcomes of a top-performer matrix.

    Returns:
        The de-duplicated outcomes in request order, or every outcome in
        catalogue order when none are given.

    Raises:
        AnalysisValidationError: If an outcome is unknown.
    """
    if outcome_keys is None:
        return list(OUTCOME_KEYS)
    unknown = [key for key in outcome_keys if not is_outcome(key)]
    if unknown:
        raise AnalysisValidationError(
            f"Unknown outcome(s): {', '.join(unknown)}", field="outcomes"
        )
    return list(dict.fromkeys(outcome_keys))


def summarize_top_performer(result: TopPerformerResult) -> TopPerformerSummary:
    """Condense a published profile to cohort size, pillar means and its three strongest drivers."""
    competencies = [e for e in result.rankedDimensions if e.kind == DimensionKind.COMPETENCY]
    return TopPerformerSummary(
        sampleSize=result.sampleSize,
        percentileThreshold=result.percentileThreshold,
        thresholdValue=result.thresholdValue,
        confidenceLevel=result.confidenceLevel,
        avgK=result.competencyProfile.get("K"),
        avgC=result.competencyProfile.get("C"),
        avgG=result.competencyProfile.get("G"),
        topCompetencies=competencies[:MATRIX_TOP_DIMENSIONS],
        topTalents=result.topTalents[:MATRIX_TOP_DIMENSIONS],
    )


def build_top_performer_matrix(
    published: Mapping[str, Sequence[TopPerformerResult]],
    outcome_keys: Optional[Sequence[str]] = None,
) -> Dict[str, Dict[str, TopPerformerSummary]]:
    """
    Arrange published top-performer profiles as outcome x benchmark.

    Args:
        published: Benchmark id -> its published results.
        outcome_keys: Outcomes to include; defaults to all twelve.

    Returns:
        matrix[outcome][benchmark_id]. Only "ok" results appear; an outcome
        no benchmark has a profile for is left out.

    Example:
        >>> matrix = build_top_performer_matrix({"bm_a": results_a, "bm_b": results_b})
        >>> sorted(matrix["effectiveness"])
        ['bm_a', 'bm_b']
    """
    outcomes = resolve_matrix_outcomes(outcome_keys)
    matrix: Dict[str, Dict[str, TopPerformerSummary]] = {}
    for outcome in outcomes:
        row = {
            benchmark_id: summarize_top_performer(result)
            for benchmark_id, results in published.items()
            for result in results
            if result.outcomeKey == outcome and result.status == ResultStatus.OK
        }
        if row:
            matrix[outcome] = row
    return matrix


# =============================================================================
# Export
# =============================================================================


def export_comparison_csv(result: ComparisonResult) -> str:
    """
    Render a comparison as CSV.

    Layout: header `Metric,<column labels>,Difference %`; one row per metric
    with each column's mean at 2 decimals ("-" when missing) and the first
    non-base column's meanDiffPercent ("-" when undefined).
    """
    labels = [column.label for column in result.columns]
    comparison_id = next(
        (column.id for column in result.columns if column.id != result.baseColumn),
        None,
    )

    rows = []
    for metric in result.metrics:
        row_stats = result.statistics.get(metric, {})
        row = [metric_label(metric)]
        for column in result.columns:
            stats = row_stats.get(column.id)
            row.append(f"{stats.mean:.2f}" if stats is not None else "-")

        diff = result.differences.get(metric, {}).get(comparison_id)
        if diff is not None and diff.meanDiffPercent is not None:
            row.append(f"{diff.meanDiffPercent:.2f}%")
        else:
            row.append("-")
        rows.append(row)

    frame = pd.DataFrame(rows, columns=["Metric", *labels, "Difference %"])
    return frame.to_csv(index=False, lineterminator="\n")
