"""
Pydantic request/response models for the benchmark analysis engine.

Every loosely-shaped payload of the analysis layer has an explicit model here:
assessment records and benchmark metadata coming in from the ingestion
collaborator, and the tagged result types going out to the API layer
(statistics, top performers, correlations, comparisons, data quality and
exports).

Conventions:
- Field names are camelCase so models serialize directly to the JSON
  contract consumed by the admin UI.
- Numbers are returned at full precision; rounding is a display concern.
- A statistic over zero values is a `NoData` instance, never a zero-filled
  `MetricStats`. The two are discriminated on `status`.

All models use Pydantic v2 syntax.
"""

import math
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from benchmark_engine.models.enums import (
    BenchmarkScope,
    BenchmarkStatus,
    BenchmarkType,
    ConfidenceLevel,
    CorrelationDirection,
    CorrelationStrength,
    DimensionKind,
    EffectMagnitude,
    ExportType,
    OutlierType,
    ResultStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Input Models (supplied by the ingestion collaborator)
# =============================================================================


class AssessmentRecord(BaseModel):
    """
    One imported SEI assessment row belonging to a benchmark.

    Records are immutable once ingested (frozen model). Every numeric field
    is optional because source spreadsheets routinely leave cells empty; the
    engine excludes missing values per metric instead of rejecting the row.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Record identifier")
    sourceId: Optional[str] = Field(
        default=None,
        description="External assessment identifier; may repeat across records"
    )
    sourceDate: Optional[date] = Field(default=None, description="Assessment date in the source system")
    benchmarkId: str = Field(..., description="Owning benchmark")

    # Categorical scope attributes
    country: Optional[str] = None
    region: Optional[str] = None
    sector: Optional[str] = None
    jobFunction: Optional[str] = None
    jobRole: Optional[str] = None
    ageRange: Optional[str] = None
    gender: Optional[str] = None
    education: Optional[str] = None
    year: Optional[int] = None

    # Total EQ and pursuits
    eqTotal: Optional[float] = None
    K: Optional[float] = None
    C: Optional[float] = None
    G: Optional[float] = None

    # Competencies
    EL: Optional[float] = None
    RP: Optional[float] = None
    ACT: Optional[float] = None
    NE: Optional[float] = None
    IM: Optional[float] = None
    OP: Optional[float] = None
    EMP: Optional[float] = None
    NG: Optional[float] = None

    # Outcomes
    effectiveness: Optional[float] = None
    relationships: Optional[float] = None
    wellbeing: Optional[float] = None
    qualityOfLife: Optional[float] = None
    influence: Optional[float] = None
    decisionMaking: Optional[float] = None
    community: Optional[float] = None
    network: Optional[float] = None
    achievement: Optional[float] = None
    satisfaction: Optional[float] = None
    balance: Optional[float] = None
    health: Optional[float] = None

    # Brain talents
    dataMining: Optional[float] = None
    modeling: Optional[float] = None
    prioritizing: Optional[float] = None
    connection: Optional[float] = None
    emotionalInsight: Optional[float] = None
    collaboration: Optional[float] = None
    reflecting: Optional[float] = None
    adaptability: Optional[float] = None
    criticalThinking: Optional[float] = None
    resilience: Optional[float] = None
    riskTolerance: Optional[float] = None
    imagination: Optional[float] = None
    proactivity: Optional[float] = None
    commitment: Optional[float] = None
    problemSolving: Optional[float] = None
    vision: Optional[float] = None
    designing: Optional[float] = None
    entrepreneurship: Optional[float] = None

    brainStyle: Optional[str] = None
    reliabilityIndex: Optional[float] = Field(
        default=None,
        description="Response consistency score (0-100)"
    )

    @field_validator("*", mode="before")
    @classmethod
    def _nan_as_missing(cls, value: Any) -> Any:
        # Spreadsheet exports and pandas frames carry empty cells as NaN
        if isinstance(value, float) and math.isnan(value):
            return None
        return value


class Benchmark(BaseModel):
    """Benchmark metadata as stored by the ingestion collaborator."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "bm_global_2025",
                "name": "Global 2025",
                "type": "ROWIVERSE",
                "scope": "GLOBAL",
                "status": "READY",
                "totalRows": 15234
            }
        }
    )

    id: str
    name: str
    type: BenchmarkType
    scope: BenchmarkScope
    status: BenchmarkStatus
    totalRows: int = Field(default=0, ge=0)
    createdAt: Optional[datetime] = None


class PopulationFilter(BaseModel):
    """
    Exact-match categorical filters selecting a subset of a benchmark.

    Values are compared exactly as given, the same way the record query in
    sql.benchmark_queries does (`column = $n`): no trimming or case folding
    on either side. Unset filters do not constrain the population; a filter
    with nothing set selects the whole benchmark.
    """
    country: Optional[str] = None
    region: Optional[str] = None
    sector: Optional[str] = None
    jobFunction: Optional[str] = None
    jobRole: Optional[str] = None
    ageRange: Optional[str] = None
    gender: Optional[str] = None
    education: Optional[str] = None
    year: Optional[int] = None

    def active_filters(self) -> Dict[str, Any]:
        """
        Return the filters that constrain the population.

        Returns:
            Dict of attribute name to required value, unset filters omitted.
            Suitable for BenchmarkRepository.fetch_records(filters=...).

        Example:
            >>> PopulationFilter(country="Chile", year=2024).active_filters()
            {'country': 'Chile', 'year': 2024}
        """
        return self.model_dump(
            include=set(PopulationFilter.model_fields),
            exclude_none=True,
        )

    def matches(self, record: AssessmentRecord) -> bool:
        """Return True when the record satisfies every active filter."""
        return all(
            getattr(record, field) == value
            for field, value in self.active_filters().items()
        )


class SegmentFilter(PopulationFilter):
    """Named population filter; one comparison column of a segment comparison."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Latin America", "region": "Latin America", "year": 2024}
        }
    )

    name: str = Field(..., min_length=1, description="Column label, unique within a request")


class CrossSegmentFilter(SegmentFilter):
    """Segment cut from a specific benchmark, for cross-benchmark comparisons."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {"name": "Chile 2024", "benchmarkId": "bm_latam_2024", "country": "Chile"}
        }
    )

    benchmarkId: str = Field(..., min_length=1)


# =============================================================================
# Statistics Models
# =============================================================================


class MetricStats(BaseModel):
    """
    Descriptive statistics of one metric over the non-null values of a
    record set.

    `stdDev` is the population standard deviation. Percentiles use linear
    interpolation between order statistics, so `p50 == median`.
    """
    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    metricKey: str
    n: int = Field(..., ge=1)
    mean: float
    median: float
    stdDev: float = Field(..., ge=0.0)
    min: float
    max: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


class NoData(BaseModel):
    """Explicit marker for a metric with zero non-null values."""
    model_config = ConfigDict(frozen=True)

    status: Literal["no_data"] = "no_data"
    metricKey: str
    n: int = 0


StatsResult = Annotated[Union[MetricStats, NoData], Field(discriminator="status")]


class OverallStat(BaseModel):
    """Statistics of one metric over a whole benchmark."""
    metricKey: str
    stats: StatsResult


class OverallStatisticsResponse(BaseModel):
    benchmarkId: str
    totalRecords: int
    statistics: List[OverallStat] = Field(default_factory=list)


class GroupedStat(BaseModel):
    """
    Per-metric statistics for one partition of a grouped analysis.

    Partitions are exact attribute values. Records with no value form the
    partition with `isUnknown=True` (named "Unknown"); a record whose value
    is literally "Unknown" belongs to an ordinary partition of that name.
    """
    groupName: str
    isUnknown: bool = Field(default=False, description="True for the partition of missing values")
    count: int = Field(..., ge=0)
    metrics: Dict[str, StatsResult] = Field(default_factory=dict)


class GroupedStatisticsResponse(BaseModel):
    benchmarkId: str
    groupBy: str
    totalRecords: int
    groups: List[GroupedStat] = Field(default_factory=list)


# =============================================================================
# Top Performer Models
# =============================================================================


class DimensionEffect(BaseModel):
    """
    Cohen's d of one competency or talent between the top cohort and the
    rest of the population.

    `ci95` is the normal-approximation 95 % interval of the top cohort mean
    (topMean ± 1.96 · topStdError, sample standard deviation).
    """
    key: str
    kind: DimensionKind
    effectSize: float
    effectInterpretation: EffectMagnitude
    isSignificant: bool
    topMean: float
    restMean: float
    topStdDev: float = Field(default=0.0, ge=0.0)
    topStdError: float = Field(default=0.0, ge=0.0)
    ci95: Tuple[float, float]


class CompetencyPattern(BaseModel):
    """
    Pair of dimensions that frequently co-occur among a top performer's three
    strongest scores.
    """
    keys: List[str]
    frequency: int = Field(..., ge=0, le=100, description="Percent of the top cohort")
    avgOutcome: float


class TopPerformerResult(BaseModel):
    """
    Top-decile cohort profile for one (benchmark, outcome).

    A result with `status == "no_data"` means the outcome had no values; it
    is distinct from a result that was never generated.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "benchmarkId": "bm_global_2025",
                "outcomeKey": "effectiveness",
                "status": "ok",
                "percentileThreshold": 90,
                "thresholdValue": 118.4,
                "sampleSize": 1523,
                "totalPopulation": 15230,
                "confidenceLevel": "high"
            }
        }
    )

    benchmarkId: str
    outcomeKey: str
    status: ResultStatus = ResultStatus.OK
    percentileThreshold: float = 90.0
    thresholdValue: Optional[float] = None
    sampleSize: int = 0
    totalPopulation: int = 0
    confidenceLevel: Optional[ConfidenceLevel] = None
    topCompetencies: List[DimensionEffect] = Field(default_factory=list)
    topTalents: List[DimensionEffect] = Field(default_factory=list)
    rankedDimensions: List[DimensionEffect] = Field(default_factory=list)
    competencyProfile: Dict[str, float] = Field(default_factory=dict)
    commonPatterns: List[CompetencyPattern] = Field(default_factory=list)
    talentPatterns: List[CompetencyPattern] = Field(default_factory=list)
    outcomeStats: Optional[MetricStats] = None
    filters: Dict[str, Any] = Field(
        default_factory=dict,
        description="Population filters; empty for the whole benchmark"
    )
    warnings: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    generatedAt: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Correlation Models
# =============================================================================


class CorrelationResult(BaseModel):
    """Pearson correlation between one predictor and one outcome."""
    benchmarkId: str
    competencyKey: str
    outcomeKey: str
    correlation: float = Field(..., ge=-1.0, le=1.0)
    strength: CorrelationStrength
    direction: CorrelationDirection
    n: int = Field(..., ge=2, description="Joint non-null observations")
    pValue: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    year: Optional[int] = Field(default=None, description="None for all years")


class OutcomeCorrelations(BaseModel):
    """Presentation view: correlations of one outcome, strongest first."""
    outcomeKey: str
    correlations: List[CorrelationResult] = Field(default_factory=list)


class CorrelationResponse(BaseModel):
    benchmarkId: str
    totalCorrelations: int
    correlations: List[CorrelationResult] = Field(default_factory=list)
    byOutcome: List[OutcomeCorrelations] = Field(default_factory=list)


# =============================================================================
# Comparison Models
# =============================================================================


class CompareBenchmarksRequest(BaseModel):
    benchmarkIds: List[str] = Field(..., description="2 to 4 benchmark ids; the first is the base")
    metrics: Optional[List[str]] = Field(default=None, description="Subset of the comparison catalogue")
    outcomes: Optional[List[str]] = Field(
        default=None,
        description="Outcomes of the published top-performer matrix; defaults to all twelve"
    )


class CompareSegmentsRequest(BaseModel):
    segments: List[SegmentFilter] = Field(..., description="2 to 4 segments; the first is the base")
    metrics: Optional[List[str]] = None


class CompareCrossSegmentsRequest(BaseModel):
    segments: List[CrossSegmentFilter] = Field(
        ..., description="2 to 4 segments, each from its own benchmark; the first is the base"
    )
    metrics: Optional[List[str]] = None


class ComparisonColumn(BaseModel):
    """One compared population: a benchmark or a segment of one."""
    id: str
    label: str
    sampleSize: int = Field(..., ge=0)
    filters: Optional[Dict[str, Any]] = None
    benchmarkId: Optional[str] = Field(default=None, description="Source benchmark of a segment column")


class MetricDifference(BaseModel):
    """
    Difference of a column against the base column for one metric.

    `meanDiffPercent` is None when the base mean is zero.
    """
    meanDiff: float
    meanDiffPercent: Optional[float] = None
    medianDiff: float


class SignificantDifference(BaseModel):
    metric: str
    avgAbsDiffPercent: float


class CompetencyMean(BaseModel):
    key: str
    mean: float


class SegmentSummary(BaseModel):
    name: str
    benchmarkId: Optional[str] = None
    benchmarkName: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)
    sampleSize: int
    avgK: Optional[float] = None
    avgC: Optional[float] = None
    avgG: Optional[float] = None
    topCompetencies: List[CompetencyMean] = Field(default_factory=list)


class TopPerformerSummary(BaseModel):
    """Published top-performer profile of one outcome, condensed for comparison."""
    sampleSize: int
    percentileThreshold: float
    thresholdValue: Optional[float] = None
    confidenceLevel: Optional[ConfidenceLevel] = None
    avgK: Optional[float] = None
    avgC: Optional[float] = None
    avgG: Optional[float] = None
    topCompetencies: List[DimensionEffect] = Field(default_factory=list)
    topTalents: List[DimensionEffect] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    """
    N-way comparison of benchmarks, of segments of one benchmark, or of
    segments drawn from different benchmarks (cross_segments).

    `statistics[metric][columnId]` holds the column's stats; columns without
    data for a metric are absent from that row. `differences[metric]` is keyed
    by column id and includes the base column, whose entry is always zero.
    """
    mode: Literal["benchmarks", "segments", "cross_segments"]
    baseColumn: str
    columns: List[ComparisonColumn]
    metrics: List[str]
    statistics: Dict[str, Dict[str, MetricStats]] = Field(default_factory=dict)
    differences: Dict[str, Dict[str, MetricDifference]] = Field(default_factory=dict)
    significantDifferences: List[SignificantDifference] = Field(default_factory=list)
    segments: List[SegmentSummary] = Field(default_factory=list)
    topPerformers: Dict[str, Dict[str, TopPerformerSummary]] = Field(
        default_factory=dict,
        description="outcome -> benchmark id -> published profile (benchmark mode only)"
    )
    comparedAt: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Data Quality Models
# =============================================================================


class CompletenessEntry(BaseModel):
    field: str
    present: int
    missing: int
    percentage: float = Field(..., ge=0.0, le=100.0)


class DuplicateGroup(BaseModel):
    sourceId: str
    count: int = Field(..., ge=2)
    records: List[AssessmentRecord]


class OutlierRecord(BaseModel):
    recordId: str
    sourceId: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    jobRole: Optional[str] = None
    brainStyle: Optional[str] = None
    reliabilityIndex: Optional[float] = None
    eqTotal: float
    zScore: float
    type: OutlierType


class OutlierStats(BaseModel):
    """eqTotal distribution parameters used for outlier flagging."""
    mean: Optional[float] = None
    stdDev: Optional[float] = None
    thresholdHigh: Optional[float] = None
    thresholdLow: Optional[float] = None
    zThreshold: float
    totalOutliers: int = 0


class ReliabilityBucket(BaseModel):
    range: str
    lower: float
    upper: float
    count: int = 0


class ReliabilityDistribution(BaseModel):
    count: int = 0
    mean: Optional[float] = None
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    buckets: List[ReliabilityBucket] = Field(default_factory=list)


class DataQualityReport(BaseModel):
    """Completeness, duplicate, outlier and reliability analysis of a benchmark."""
    benchmarkId: str
    totalRecords: int
    qualityScore: float = Field(..., ge=0.0, le=100.0)
    completeness: List[CompletenessEntry] = Field(default_factory=list)
    duplicates: List[DuplicateGroup] = Field(default_factory=list)
    totalDuplicateGroups: int = 0
    totalDuplicateRecords: int = 0
    outliers: List[OutlierRecord] = Field(default_factory=list)
    outlierStats: OutlierStats
    reliabilityDistribution: ReliabilityDistribution
    analyzedAt: datetime = Field(default_factory=_utcnow)


# =============================================================================
# Export Models
# =============================================================================


class ExportMetadata(BaseModel):
    benchmarkId: str
    benchmarkName: str
    type: ExportType
    exportedAt: datetime = Field(default_factory=_utcnow)
    totalRecords: int = Field(..., ge=0, description="Number of exported rows")


class ExportResponse(BaseModel):
    """JSON form of a benchmark export: the same rows the CSV form carries."""
    data: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: ExportMetadata
