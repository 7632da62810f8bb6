"""
Tabular export of benchmark results.

Three export types, each a list of flat rows with display column names:

    stats           live statistics of every catalogue metric
    top-performers  published top-performer profiles, one row per outcome
    correlations    published correlations, one row per pair and year

Rows are plain dicts so the same data serves the JSON export and, through
rows_to_csv, the CSV download. Numbers are pre-formatted as strings with a
fixed number of decimals; a metric without data exports "-" in its numeric
columns.

Dependencies:
    - pandas: CSV rendering
"""

import logging
from datetime import date
from typing import Any, Dict, List, Sequence

import pandas as pd

from benchmark_engine.models.catalog import metric_label
from benchmark_engine.models.enums import DimensionKind, ExportType, ResultStatus
from benchmark_engine.models.schemas import (
    CorrelationResult,
    MetricStats,
    OverallStat,
    TopPerformerResult,
)

logger = logging.getLogger(__name__)


# p < this is reported as "Yes" in the Significant column
SIGNIFICANCE_LEVEL: float = 0.05

# Dimensions listed per top-performer export row
EXPORT_TOP_DIMENSIONS: int = 3

MISSING: str = "-"

STATISTICS_COLUMNS: List[str] = [
    "Metric", "Code", "N", "Mean", "Median", "Std Dev", "Min", "Max",
    "P10", "P25", "P50", "P75", "P90", "P95",
]

TOP_PERFORMER_COLUMNS: List[str] = [
    "Outcome", "Sample Size", "Percentile Threshold", "Threshold Value",
    "Avg K", "Avg C", "Avg G", "Top 3 Competencies", "Top 3 Talents",
]

CORRELATION_COLUMNS: List[str] = [
    "Competency", "Outcome", "Year", "Correlation", "P-Value", "N", "Significant", "Strength",
]

EXPORT_COLUMNS: Dict[ExportType, List[str]] = {
    ExportType.STATS: STATISTICS_COLUMNS,
    ExportType.TOP_PERFORMERS: TOP_PERFORMER_COLUMNS,
    ExportType.CORRELATIONS: CORRELATION_COLUMNS,
}


def _fmt(value: Any, decimals: int) -> str:
    if value is None:
        return MISSING
    return f"{value:.{decimals}f}"


def statistics_export_rows(statistics: Sequence[OverallStat]) -> List[Dict[str, Any]]:
    """
    One row per metric with its descriptive statistics at 2 decimals.

    Args:
        statistics: Output of compute_overall_statistics.

    Returns:
        Rows keyed by STATISTICS_COLUMNS. N is an integer (0 for a metric
        without data); every other numeric column is a string.
    """
    rows = []
    for entry in statistics:
        stats = entry.stats
        row: Dict[str, Any] = {
            "Metric": metric_label(entry.metricKey),
            "Code": entry.metricKey,
            "N": stats.n,
        }
        present = isinstance(stats, MetricStats)
        for column, field in (
            ("Mean", "mean"), ("Median", "median"), ("Std Dev", "stdDev"),
            ("Min", "min"), ("Max", "max"),
            ("P10", "p10"), ("P25", "p25"), ("P50", "p50"),
            ("P75", "p75"), ("P90", "p90"), ("P95", "p95"),
        ):
            row[column] = _fmt(getattr(stats, field) if present else None, 2)
        rows.append(row)
    return rows


def top_performer_export_rows(results: Sequence[TopPerformerResult]) -> List[Dict[str, Any]]:
    """
    One row per outcome with a published "ok" profile.

    Competencies are the three highest-ranked competency dimensions; talents
    the three highest-ranked talents. Both are exported as display labels
    joined with ", ".
    """
    rows = []
    for result in results:
        if result.status != ResultStatus.OK:
            continue
        competencies = [
            e.key for e in result.rankedDimensions if e.kind == DimensionKind.COMPETENCY
        ][:EXPORT_TOP_DIMENSIONS]
        talents = [e.key for e in result.topTalents][:EXPORT_TOP_DIMENSIONS]
        rows.append({
            "Outcome": metric_label(result.outcomeKey),
            "Sample Size": result.sampleSize,
            "Percentile Threshold": result.percentileThreshold,
            "Threshold Value": _fmt(result.thresholdValue, 1),
            "Avg K": _fmt(result.competencyProfile.get("K"), 1),
            "Avg C": _fmt(result.competencyProfile.get("C"), 1),
            "Avg G": _fmt(result.competencyProfile.get("G"), 1),
            "Top 3 Competencies": ", ".join(metric_label(key) for key in competencies),
            "Top 3 Talents": ", ".join(metric_label(key) for key in talents),
        })
    return rows


def correlation_export_rows(correlations: Sequence[CorrelationResult]) -> List[Dict[str, Any]]:
    """
    One row per published correlation.

    Year is "All" for the all-years row. A correlation without a p-value is
    never reported as significant.
    """
    rows = []
    for correlation in correlations:
        significant = correlation.pValue is not None and correlation.pValue < SIGNIFICANCE_LEVEL
        rows.append({
            "Competency": metric_label(correlation.competencyKey),
            "Outcome": metric_label(correlation.outcomeKey),
            "Year": correlation.year if correlation.year is not None else "All",
            "Correlation": _fmt(correlation.correlation, 4),
            "P-Value": _fmt(correlation.pValue, 6),
            "N": correlation.n,
            "Significant": "Yes" if significant else "No",
            "Strength": correlation.strength.value,
        })
    return rows


def rows_to_csv(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    """
    Render export rows as CSV with a header line.

    An empty export still yields the header, so downloads always open with
    the expected columns.
    """
    frame = pd.DataFrame(list(rows), columns=list(columns))
    logger.debug(f"Rendering {len(frame)} export rows as CSV")
    return frame.to_csv(index=False, lineterminator="\n")


def export_filename(benchmark_name: str, export_type: ExportType, on: date) -> str:
    """
    Download name of an export.

    Example:
        >>> export_filename("Global 2025", ExportType.STATS, date(2025, 3, 1))
        'Global_2025_stats_2025-03-01.csv'
    """
    return f"{benchmark_name.replace(' ', '_')}_{export_type.value}_{on.isoformat()}.csv"
