"""
Tests for the data-quality analyzer (services/data_quality.py).

Test Classes:
- TestCompleteness: Presence counting and ordering
- TestDuplicates: sourceId grouping
- TestOutliers: z-score flagging and threshold monotonicity
- TestReliability: Bucket boundaries and uniform data
- TestQualityScore: Weighted score
- TestReport: analyze_data_quality end to end
"""

import numpy as np
import pytest

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.models.catalog import COMPLETENESS_FIELDS
from benchmark_engine.models.enums import OutlierType
from benchmark_engine.services.data_quality import (
    analyze_completeness,
    analyze_data_quality,
    detect_outliers,
    find_duplicates,
    quality_score,
    reliability_distribution,
)


class TestCompleteness:
    """analyze_completeness."""

    def test_counts_present_and_missing(self, record_factory) -> None:
        records = [
            record_factory(eqTotal=100.0, country="Spain"),
            record_factory(eqTotal=None, country=""),
            record_factory(eqTotal=float("nan"), country="Mexico"),
            record_factory(eqTotal=90.0),
        ]

        entries = {e.field: e for e in analyze_completeness(records)}

        assert entries["eqTotal"].present == 2
        assert entries["eqTotal"].missing == 2
        assert entries["eqTotal"].percentage == pytest.approx(50.0)
        assert entries["country"].present == 2
        assert entries["G"].percentage == 0.0

    def test_least_complete_first(self, record_factory) -> None:
        entries = analyze_completeness([record_factory(eqTotal=1.0)])

        assert len(entries) == len(COMPLETENESS_FIELDS)
        assert entries[-1].field == "eqTotal"
        assert entries[0].percentage == 0.0

    def test_empty_record_set(self) -> None:
        entries = analyze_completeness([])

        assert all(e.percentage == 0.0 and e.present == 0 for e in entries)


class TestDuplicates:
    """find_duplicates."""

    def test_shared_source_id_forms_one_group(self, sample_records, record_factory) -> None:
        repeated = [record_factory(sourceId="TP-0042", eqTotal=float(i)) for i in range(3)]
        records = list(sample_records) + repeated

        groups = find_duplicates(records)

        assert len(groups) == 1
        assert groups[0].sourceId == "TP-0042"
        assert groups[0].count == 3
        assert {r.id for r in groups[0].records} == {r.id for r in repeated}

    def test_null_source_ids_are_never_grouped(self, record_factory) -> None:
        records = [record_factory(sourceId=None), record_factory(sourceId=None)]

        assert find_duplicates(records) == []

    def test_groups_are_disjoint_and_ordered(self, record_factory) -> None:
        records = (
            [record_factory(sourceId="B") for _ in range(2)]
            + [record_factory(sourceId="A") for _ in range(2)]
            + [record_factory(sourceId="C") for _ in range(4)]
            + [record_factory(sourceId="D")]
        )

        groups = find_duplicates(records)

        assert [(g.sourceId, g.count) for g in groups] == [("C", 4), ("A", 2), ("B", 2)]
        ids = [r.id for g in groups for r in g.records]
        assert len(ids) == len(set(ids))


class TestOutliers:
    """detect_outliers."""

    def test_flags_both_tails(self, record_factory) -> None:
        records = [record_factory(eqTotal=100.0) for _ in range(20)]
        high = record_factory(eqTotal=160.0, country="Spain")
        low = record_factory(eqTotal=40.0)
        records += [high, low]

        outliers, stats = detect_outliers(records, 2.0)

        assert {o.recordId: o.type for o in outliers} == {
            high.id: OutlierType.HIGH,
            low.id: OutlierType.LOW,
        }
        assert outliers[0].country in ("Spain", None)
        assert stats.totalOutliers == 2
        assert stats.mean == pytest.approx(100.0)
        assert stats.thresholdHigh == pytest.approx(100.0 + 2 * stats.stdDev)

    def test_lowering_threshold_never_flags_fewer(self, sample_records) -> None:
        counts = [
            len(detect_outliers(sample_records, z)[0])
            for z in (3.0, 2.5, 2.0, 1.5, 1.0, 0.5)
        ]

        assert counts == sorted(counts)
        assert counts[-1] > counts[0]

    def test_sorted_by_absolute_z(self, sample_records) -> None:
        outliers, _ = detect_outliers(sample_records, 1.5)

        magnitudes = [abs(o.zScore) for o in outliers]
        assert magnitudes == sorted(magnitudes, reverse=True)
        assert all(abs(o.zScore) >= 1.5 for o in outliers)

    def test_constant_values_have_no_outliers(self, record_factory) -> None:
        outliers, stats = detect_outliers([record_factory(eqTotal=80.0) for _ in range(5)], 2.0)

        assert outliers == []
        assert stats.stdDev == 0.0

    def test_no_values(self, record_factory) -> None:
        outliers, stats = detect_outliers([record_factory()], 2.0)

        assert outliers == []
        assert stats.mean is None
        assert stats.zThreshold == 2.0


class TestReliability:
    """reliability_distribution."""

    def test_uniform_values_fill_buckets_evenly(self, record_factory) -> None:
        rng = np.random.default_rng(2024)
        records = [record_factory(reliabilityIndex=float(v)) for v in rng.uniform(0, 100, 1000)]

        distribution = reliability_distribution(records)

        assert distribution.count == 1000
        assert [b.range for b in distribution.buckets] == ["0-20", "20-40", "40-60", "60-80", "80-100"]
        assert sum(b.count for b in distribution.buckets) == 1000
        for bucket in distribution.buckets:
            assert 150 <= bucket.count <= 250

    def test_boundaries(self, record_factory) -> None:
        values = [0.0, 19.99, 20.0, 79.99, 80.0, 100.0, 100.5, -1.0]
        records = [record_factory(reliabilityIndex=v) for v in values]

        distribution = reliability_distribution(records)

        assert [b.count for b in distribution.buckets] == [2, 1, 0, 1, 2]
        assert distribution.count == len(values)
        assert distribution.min == -1.0
        assert distribution.max == 100.5

    def test_no_values(self) -> None:
        distribution = reliability_distribution([])

        assert distribution.count == 0
        assert distribution.mean is None
        assert all(b.count == 0 for b in distribution.buckets)


class TestQualityScore:
    """quality_score weighting."""

    def test_empty_set_scores_zero(self) -> None:
        assert quality_score(0, [], 0, None, AnalysisPolicy()) == 0.0

    def test_perfect_data_scores_hundred(self, record_factory) -> None:
        completeness = analyze_completeness([record_factory(eqTotal=1.0)])
        for entry in completeness:
            entry.percentage = 100.0

        assert quality_score(1, completeness, 0, 100.0, AnalysisPolicy()) == pytest.approx(100.0)

    def test_reliability_term_dropped_when_absent(self, record_factory) -> None:
        completeness = analyze_completeness([record_factory(eqTotal=1.0)])
        for entry in completeness:
            entry.percentage = 50.0
        policy = AnalysisPolicy()

        # (0.6 * 0.5 + 0.2 * 1.0) / 0.8
        assert quality_score(10, completeness, 0, None, policy) == pytest.approx(62.5)
        # (0.6 * 0.5 + 0.2 * 0.5 + 0.2 * 0.8) / 1.0
        assert quality_score(10, completeness, 5, 80.0, policy) == pytest.approx(56.0)

    def test_weights_are_configurable(self, record_factory) -> None:
        completeness = analyze_completeness([record_factory(eqTotal=1.0)])
        for entry in completeness:
            entry.percentage = 40.0
        policy = AnalysisPolicy(
            quality_weight_completeness=1.0,
            quality_weight_duplicates=0.0,
            quality_weight_reliability=0.0,
        )

        assert quality_score(10, completeness, 10, 0.0, policy) == pytest.approx(40.0)


class TestReport:
    """analyze_data_quality."""

    def test_report_on_sample(self, sample_records, policy) -> None:
        report = analyze_data_quality(sample_records, "bm_test", policy)

        assert report.benchmarkId == "bm_test"
        assert report.totalRecords == 200
        assert report.totalDuplicateGroups == 0
        assert report.totalDuplicateRecords == 0
        assert report.outlierStats.totalOutliers == len(report.outliers)
        assert report.reliabilityDistribution.count == 200
        assert 0.0 < report.qualityScore <= 100.0

    def test_duplicates_lower_the_score(self, sample_records, record_factory, policy) -> None:
        duplicated = list(sample_records) + [
            record_factory(sourceId="SRC-0000", **{k: getattr(sample_records[0], k) for k in ("eqTotal", "reliabilityIndex")})
            for _ in range(50)
        ]

        clean = analyze_data_quality(sample_records, "bm_test", policy)
        dirty = analyze_data_quality(duplicated, "bm_test", policy)

        assert dirty.totalDuplicateGroups == 1
        assert dirty.totalDuplicateRecords == 51
        assert dirty.qualityScore < clean.qualityScore

    def test_empty_benchmark(self, policy) -> None:
        report = analyze_data_quality([], "bm_empty", policy)

        assert report.qualityScore == 0.0
        assert report.outliers == []
        assert report.duplicates == []
        assert report.reliabilityDistribution.count == 0
