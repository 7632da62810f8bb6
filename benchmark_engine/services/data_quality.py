"""
Data Quality Analyzer for benchmark record sets.

Produces one DataQualityReport per benchmark covering:

    1. Completeness: present / missing counts and percentage for each
       declared field, least complete first.
    2. Duplicates: records sharing a non-null sourceId, largest groups first.
    3. Outliers: records whose eqTotal lies at least outlier_z_threshold
       population standard deviations from the mean.
    4. Reliability: distribution of reliabilityIndex over five 20-point
       buckets ([0,20) ... [80,100], the last one closed).
    5. qualityScore: weighted blend of the above, 0-100.

Quality Score:
    score = 100 * (w_c * completeness/100
                   + w_d * (1 - duplicate records / total records)
                   + w_r * mean reliability/100) / (w_c + w_d + w_r)
    clamped to [0, 100]. Weights come from the analysis policy. When no
    record has a reliabilityIndex the reliability term and its weight are
    left out. An empty record set scores 0.

Dependencies:
    - numpy: Population mean / std and z-scores
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.models.catalog import COMPLETENESS_FIELDS, EQ_TOTAL_KEY, RELIABILITY_KEY
from benchmark_engine.models.enums import OutlierType
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    CompletenessEntry,
    DataQualityReport,
    DuplicateGroup,
    OutlierRecord,
    OutlierStats,
    ReliabilityBucket,
    ReliabilityDistribution,
)
from benchmark_engine.services.statistics import extract_metric_values

logger = logging.getLogger(__name__)


# (label, lower bound, upper bound); the last bucket includes its upper bound
RELIABILITY_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-20", 0.0, 20.0),
    ("20-40", 20.0, 40.0),
    ("40-60", 40.0, 60.0),
    ("60-80", 60.0, 80.0),
    ("80-100", 80.0, 100.0),
)


# =============================================================================
# Completeness
# =============================================================================


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, float):
        return bool(np.isfinite(value))
    return True


def analyze_completeness(records: Sequence[AssessmentRecord]) -> List[CompletenessEntry]:
    """
    Presence of each declared field across the record set.

    Returns:
        Entries sorted by percentage ascending, then field name. With no
        records every field reports 0 %.
    """
    total = len(records)
    entries = []
    for field in COMPLETENESS_FIELDS:
        present = sum(1 for record in records if _is_present(getattr(record, field)))
        entries.append(CompletenessEntry(
            field=field,
            present=present,
            missing=total - present,
            percentage=(present / total * 100) if total else 0.0,
        ))
    entries.sort(key=lambda e: (e.percentage, e.field))
    return entries


# =============================================================================
# Duplicates
# =============================================================================


def find_duplicates(records: Sequence[AssessmentRecord]) -> List[DuplicateGroup]:
    """
    Group records sharing the same non-null sourceId.

    Returns:
        Groups with more than one record, by size descending then sourceId.
    """
    by_source: Dict[str, List[AssessmentRecord]] = defaultdict(list)
    for record in records:
        if record.sourceId is not None:
            by_source[record.sourceId].append(record)

    groups = [
        DuplicateGroup(sourceId=source_id, count=len(members), records=members)
        for source_id, members in by_source.items()
        if len(members) > 1
    ]
    groups.sort(key=lambda g: (-g.count, g.sourceId))
    return groups


# =============================================================================
# Outliers
# =============================================================================


def detect_outliers(
    records: Sequence[AssessmentRecord],
    z_threshold: float,
) -> Tuple[List[OutlierRecord], OutlierStats]:
    """
    Flag eqTotal outliers by population z-score.

    A record is an outlier when |z| >= z_threshold, so lowering the threshold
    never flags fewer records. A constant eqTotal has no outliers.

    Args:
        records: Assessment records.
        z_threshold: Cut-off in population standard deviations.

    Returns:
        (outliers sorted by |z| descending then record id, distribution stats)
    """
    values = extract_metric_values(records, EQ_TOTAL_KEY)
    if values.size == 0:
        return [], OutlierStats(zThreshold=z_threshold)

    mean = float(np.mean(values))
    std_dev = float(np.std(values))
    stats = OutlierStats(
        mean=mean,
        stdDev=std_dev,
        thresholdHigh=mean + z_threshold * std_dev,
        thresholdLow=mean - z_threshold * std_dev,
        zThreshold=z_threshold,
    )
    if std_dev <= 1e-12:
        return [], stats

    outliers = []
    for record in records:
        eq_total = record.eqTotal
        if eq_total is None or not np.isfinite(eq_total):
            continue
        z_score = (eq_total - mean) / std_dev
        if abs(z_score) >= z_threshold:
            outliers.append(OutlierRecord(
                recordId=record.id,
                sourceId=record.sourceId,
                country=record.country,
                region=record.region,
                jobRole=record.jobRole,
                brainStyle=record.brainStyle,
                reliabilityIndex=record.reliabilityIndex,
                eqTotal=eq_total,
                zScore=z_score,
                type=OutlierType.HIGH if z_score > 0 else OutlierType.LOW,
            ))

    outliers.sort(key=lambda o: (-abs(o.zScore), o.recordId))
    stats.totalOutliers = len(outliers)
    return outliers, stats


# =============================================================================
# Reliability
# =============================================================================


def reliability_distribution(records: Sequence[AssessmentRecord]) -> ReliabilityDistribution:
    """
    Summary and bucket counts of reliabilityIndex.

    Values outside [0, 100] count toward the summary but fall in no bucket.
    """
    values = extract_metric_values(records, RELIABILITY_KEY)

    buckets = []
    for index, (label, lower, upper) in enumerate(RELIABILITY_BUCKETS):
        last = index == len(RELIABILITY_BUCKETS) - 1
        upper_mask = values <= upper if last else values < upper
        buckets.append(ReliabilityBucket(
            range=label,
            lower=lower,
            upper=upper,
            count=int(np.count_nonzero((values >= lower) & upper_mask)),
        ))

    if values.size == 0:
        return ReliabilityDistribution(buckets=buckets)

    return ReliabilityDistribution(
        count=int(values.size),
        mean=float(np.mean(values)),
        median=float(np.median(values)),
        min=float(np.min(values)),
        max=float(np.max(values)),
        buckets=buckets,
    )


# =============================================================================
# Quality Score
# =============================================================================


def quality_score(
    total_records: int,
    completeness: Sequence[CompletenessEntry],
    total_duplicate_records: int,
    avg_reliability: Optional[float],
    policy: AnalysisPolicy,
) -> float:
    """Weighted 0-100 quality score (see module docstring)."""
    if total_records == 0:
        return 0.0

    avg_completeness = (
        sum(entry.percentage for entry in completeness) / len(completeness)
        if completeness else 0.0
    )
    duplicate_ratio = min(1.0, total_duplicate_records / total_records)

    weighted = (
        policy.quality_weight_completeness * avg_completeness / 100
        + policy.quality_weight_duplicates * (1 - duplicate_ratio)
    )
    weights = policy.quality_weight_completeness + policy.quality_weight_duplicates

    if avg_reliability is not None:
        clamped_reliability = min(100.0, max(0.0, avg_reliability))
        weighted += policy.quality_weight_reliability * clamped_reliability / 100
        weights += policy.quality_weight_reliability

    if weights <= 0:
        return 0.0
    return min(100.0, max(0.0, 100 * weighted / weights))


# =============================================================================
# Report
# =============================================================================


def analyze_data_quality(
    records: Sequence[AssessmentRecord],
    benchmark_id: str,
    policy: Optional[AnalysisPolicy] = None,
) -> DataQualityReport:
    """
    Build the data-quality report of a benchmark.

    Args:
        records: All assessment records of the benchmark.
        benchmark_id: Benchmark the records belong to.
        policy: Outlier threshold and quality weights; defaults to AnalysisPolicy().

    Returns:
        DataQualityReport. An empty record set yields 0 % completeness,
        no duplicates or outliers, empty reliability and a score of 0.
    """
    policy = policy or AnalysisPolicy()

    completeness = analyze_completeness(records)
    duplicates = find_duplicates(records)
    outliers, outlier_stats = detect_outliers(records, policy.outlier_z_threshold)
    reliability = reliability_distribution(records)

    total_duplicate_records = sum(group.count for group in duplicates)
    score = quality_score(
        len(records), completeness, total_duplicate_records, reliability.mean, policy
    )

    logger.info(
        f"Data quality for {benchmark_id}: {len(records)} records, score {score:.1f}, "
        f"{len(duplicates)} duplicate groups, {len(outliers)} outliers"
    )
    return DataQualityReport(
        benchmarkId=benchmark_id,
        totalRecords=len(records),
        qualityScore=score,
        completeness=completeness,
        duplicates=duplicates,
        totalDuplicateGroups=len(duplicates),
        totalDuplicateRecords=total_duplicate_records,
        outliers=outliers,
        outlierStats=outlier_stats,
        reliabilityDistribution=reliability,
    )
