"""
Enumeration definitions for the benchmark analysis engine.

All enums inherit from both `str` and `Enum` so that Pydantic models serialize
them as plain strings in API responses and accept the raw string on input.

Groups:
- Benchmark metadata: BenchmarkType, BenchmarkScope, BenchmarkStatus
- Result classification: ResultStatus, ConfidenceLevel, DimensionKind,
  EffectMagnitude, CorrelationStrength, CorrelationDirection, OutlierType
- Request parameters: GroupByField, ExportType
"""

from enum import Enum


class BenchmarkType(str, Enum):
    """
    Origin of a benchmark population.

    - ROWIVERSE: Built from the platform's own assessment pool
    - EXTERNAL: Imported from a third-party SEI export
    - INTERNAL: Built from a single organization's assessments
    """
    ROWIVERSE = "ROWIVERSE"
    EXTERNAL = "EXTERNAL"
    INTERNAL = "INTERNAL"


class BenchmarkScope(str, Enum):
    """
    Population scope a benchmark represents.
    """
    GLOBAL = "GLOBAL"
    REGION = "REGION"
    COUNTRY = "COUNTRY"
    SECTOR = "SECTOR"
    TENANT = "TENANT"
    HUB = "HUB"
    COMMUNITY = "COMMUNITY"


class BenchmarkStatus(str, Enum):
    """
    Processing lifecycle of a benchmark.

    Only READY benchmarks have a complete, immutable record set and are
    eligible for analysis. PENDING and PROCESSING benchmarks are still being
    ingested; FAILED benchmarks never completed ingestion.
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


class ResultStatus(str, Enum):
    """
    Tag distinguishing a computed result from an explicit "no data" result.

    - OK: The statistic was computed over at least one value
    - NO_DATA: Zero non-null values were available; nothing was computed
    """
    OK = "ok"
    NO_DATA = "no_data"


class ConfidenceLevel(str, Enum):
    """
    Confidence in a top-performer cohort, derived from cohort size.

    Default bands: high >= 100, medium 30-99, low < 30.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DimensionKind(str, Enum):
    """Family a ranked top-performer dimension belongs to."""
    COMPETENCY = "competency"
    TALENT = "talent"


class EffectMagnitude(str, Enum):
    """
    Conventional reading of a Cohen's d, based on |d| only.

    - NEGLIGIBLE: |d| < 0.2
    - SMALL: 0.2 <= |d| < 0.5
    - MEDIUM: 0.5 <= |d| < 0.8
    - LARGE: |d| >= 0.8
    """
    NEGLIGIBLE = "negligible"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class CorrelationStrength(str, Enum):
    """
    Strength band of a Pearson coefficient, based on |r| only.

    Default bands: weak < 0.3 <= moderate < 0.5 <= strong.
    """
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class CorrelationDirection(str, Enum):
    """Sign of a Pearson coefficient, kept separate from its strength."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONE = "none"


class OutlierType(str, Enum):
    """Side of the distribution an eqTotal outlier falls on."""
    HIGH = "high"
    LOW = "low"


class GroupByField(str, Enum):
    """
    Categorical record attributes usable as a grouping or segment dimension.

    Values are the AssessmentRecord attribute names.
    """
    COUNTRY = "country"
    REGION = "region"
    SECTOR = "sector"
    JOB_FUNCTION = "jobFunction"
    JOB_ROLE = "jobRole"
    AGE_RANGE = "ageRange"
    GENDER = "gender"
    EDUCATION = "education"
    YEAR = "year"
    BRAIN_STYLE = "brainStyle"


class ExportType(str, Enum):
    """
    Result family rendered by the benchmark export endpoint.

    - STATS: Overall statistics, computed from the current records
    - TOP_PERFORMERS: Published top-performer results
    - CORRELATIONS: Published correlations
    """
    STATS = "stats"
    TOP_PERFORMERS = "top-performers"
    CORRELATIONS = "correlations"
