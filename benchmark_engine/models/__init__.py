"""
Package initialization file for benchmark engine models.

This module exports the metric catalogue, enumerations and Pydantic schemas so
other modules can import data models from benchmark_engine.models directly.

Usage:
    from benchmark_engine.models import (
        AssessmentRecord,
        MetricStats,
        NoData,
        TopPerformerResult,
        COMPETENCY_KEYS,
        # ... etc
    )
"""

# =============================================================================
# Metric catalogue
# =============================================================================

from benchmark_engine.models.catalog import (
    EQ_TOTAL_KEY,
    RELIABILITY_KEY,
    PILLAR_KEYS,
    COMPETENCY_KEYS,
    OUTCOME_KEYS,
    TALENT_KEYS,
    COMPARISON_METRIC_KEYS,
    STATISTIC_METRIC_KEYS,
    CORRELATION_PREDICTOR_KEYS,
    TOP_PERFORMER_DIMENSION_KEYS,
    COMPLETENESS_FIELDS,
    METRIC_LABELS,
    is_outcome,
    is_statistic_metric,
    metric_label,
)


# =============================================================================
# Enums
# =============================================================================

from benchmark_engine.models.enums import (
    BenchmarkType,
    BenchmarkScope,
    BenchmarkStatus,
    ResultStatus,
    ConfidenceLevel,
    DimensionKind,
    EffectMagnitude,
    CorrelationStrength,
    CorrelationDirection,
    OutlierType,
    GroupByField,
    ExportType,
)


# =============================================================================
# Schemas
# =============================================================================

from benchmark_engine.models.schemas import (
    # Inputs
    AssessmentRecord,
    Benchmark,
    PopulationFilter,
    SegmentFilter,
    CrossSegmentFilter,
    # Statistics
    MetricStats,
    NoData,
    StatsResult,
    OverallStat,
    OverallStatisticsResponse,
    GroupedStat,
    GroupedStatisticsResponse,
    # Top performers
    DimensionEffect,
    CompetencyPattern,
    TopPerformerResult,
    TopPerformerSummary,
    # Correlations
    CorrelationResult,
    OutcomeCorrelations,
    CorrelationResponse,
    # Comparison
    CompareBenchmarksRequest,
    CompareSegmentsRequest,
    CompareCrossSegmentsRequest,
    ComparisonColumn,
    MetricDifference,
    SignificantDifference,
    CompetencyMean,
    SegmentSummary,
    ComparisonResult,
    # Data quality
    CompletenessEntry,
    DuplicateGroup,
    OutlierRecord,
    OutlierStats,
    ReliabilityBucket,
    ReliabilityDistribution,
    DataQualityReport,
    # Export
    ExportMetadata,
    ExportResponse,
)


__all__ = [
    # Catalogue
    "EQ_TOTAL_KEY",
    "RELIABILITY_KEY",
    "PILLAR_KEYS",
    "COMPETENCY_KEYS",
    "OUTCOME_KEYS",
    "TALENT_KEYS",
    "COMPARISON_METRIC_KEYS",
    "STATISTIC_METRIC_KEYS",
    "CORRELATION_PREDICTOR_KEYS",
    "TOP_PERFORMER_DIMENSION_KEYS",
    "COMPLETENESS_FIELDS",
    "METRIC_LABELS",
    "is_outcome",
    "is_statistic_metric",
    "metric_label",
    # Enums
    "BenchmarkType",
    "BenchmarkScope",
    "BenchmarkStatus",
    "ResultStatus",
    "ConfidenceLevel",
    "DimensionKind",
    "EffectMagnitude",
    "CorrelationStrength",
    "CorrelationDirection",
    "OutlierType",
    "GroupByField",
    "ExportType",
    # Schemas
    "AssessmentRecord",
    "Benchmark",
    "PopulationFilter",
    "SegmentFilter",
    "CrossSegmentFilter",
    "MetricStats",
    "NoData",
    "StatsResult",
    "OverallStat",
    "OverallStatisticsResponse",
    "GroupedStat",
    "GroupedStatisticsResponse",
    "DimensionEffect",
    "CompetencyPattern",
    "TopPerformerResult",
    "TopPerformerSummary",
    "CorrelationResult",
    "OutcomeCorrelations",
    "CorrelationResponse",
    "CompareBenchmarksRequest",
    "CompareSegmentsRequest",
    "CompareCrossSegmentsRequest",
    "ComparisonColumn",
    "MetricDifference",
    "SignificantDifference",
    "CompetencyMean",
    "SegmentSummary",
    "ComparisonResult",
    "CompletenessEntry",
    "DuplicateGroup",
    "OutlierRecord",
    "OutlierStats",
    "ReliabilityBucket",
    "ReliabilityDistribution",
    "DataQualityReport",
    "ExportMetadata",
    "ExportResponse",
]
