"""
Tests for N-way comparisons (services/comparison.py).

Test Classes:
- TestCompareBenchmarks: Base-relative differences and validation
- TestSignificantDifferences: Average absolute percent threshold
- TestCompareSegments: Segment filtering and summaries
- TestCompareCrossSegments: Segments drawn from different benchmarks
- TestTopPerformerMatrix: Published profiles arranged by outcome and benchmark
- TestExportCsv: CSV layout
"""

import io

import pandas as pd
import pytest

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError, BenchmarkNotReadyError
from benchmark_engine.models.catalog import COMPARISON_METRIC_KEYS
from benchmark_engine.models.enums import BenchmarkStatus, DimensionKind, ResultStatus
from benchmark_engine.models.schemas import (
    ComparisonColumn,
    CrossSegmentFilter,
    PopulationFilter,
    SegmentFilter,
    TopPerformerResult,
)
from benchmark_engine.services.comparison import (
    build_top_performer_matrix,
    compare_benchmarks,
    compare_columns,
    compare_cross_segments,
    compare_segments,
    export_comparison_csv,
    metric_difference,
    validate_column_count,
)
from benchmark_engine.services.statistics import stats_from_values
from benchmark_engine.services.top_performers import generate_all_top_performers
from benchmark_engine.tests.conftest import build_sample_records, make_benchmark, make_record


def _population(benchmark_id: str, center: float, size: int = 500, **extra):
    """Records whose K values alternate center -5 / center +5 (mean == center)."""
    return [
        make_record(benchmark_id, K=center + (5.0 if i % 2 else -5.0), **extra)
        for i in range(size)
    ]


@pytest.fixture
def benchmark_a():
    return make_benchmark("bm_a", name="Benchmark A"), _population("bm_a", 100.0)


@pytest.fixture
def benchmark_b():
    return make_benchmark("bm_b", name="Benchmark B"), _population("bm_b", 110.0)


class TestCompareBenchmarks:
    """compare_benchmarks over two known populations."""

    def test_difference_against_declared_base(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_b, benchmark_a], ["K"])

        diff = result.differences["K"]["bm_a"]
        assert result.baseColumn == "bm_b"
        assert diff.meanDiff == pytest.approx(-10.0)
        assert diff.meanDiffPercent == pytest.approx(-9.0909, abs=1e-4)
        assert diff.medianDiff == pytest.approx(-10.0)

    def test_reversed_base_reverses_direction(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_a, benchmark_b], ["K"])

        diff = result.differences["K"]["bm_b"]
        assert result.baseColumn == "bm_a"
        assert diff.meanDiff == pytest.approx(10.0)
        assert diff.meanDiffPercent == pytest.approx(10.0)

    def test_base_against_itself_is_zero(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_a, benchmark_b])

        for metric, row in result.differences.items():
            base = row["bm_a"]
            assert base.meanDiff == 0
            assert base.meanDiffPercent == 0
            assert base.medianDiff == 0

    def test_columns_and_statistics(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_a, benchmark_b], ["K", "EL"])

        assert [c.label for c in result.columns] == ["Benchmark A", "Benchmark B"]
        assert [c.sampleSize for c in result.columns] == [500, 500]
        assert result.statistics["K"]["bm_b"].mean == pytest.approx(110.0)
        # No EL values anywhere: empty row, no differences
        assert result.statistics["EL"] == {}
        assert "EL" not in result.differences

    def test_defaults_to_comparison_catalogue(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_a, benchmark_b])

        assert result.metrics == list(COMPARISON_METRIC_KEYS)
        assert result.mode == "benchmarks"

    @pytest.mark.parametrize("count", [0, 1, 5])
    def test_column_count_is_validated(self, count: int) -> None:
        benchmarks = [
            (make_benchmark(f"bm_{i}"), _population(f"bm_{i}", 100.0, size=4))
            for i in range(count)
        ]
        with pytest.raises(AnalysisValidationError, match="Between 2 and 4"):
            compare_benchmarks(benchmarks)

    def test_four_columns_are_accepted(self) -> None:
        benchmarks = [
            (make_benchmark(f"bm_{i}"), _population(f"bm_{i}", 100.0 + i, size=4))
            for i in range(4)
        ]

        result = compare_benchmarks(benchmarks, ["K"])

        assert set(result.differences["K"]) == {"bm_0", "bm_1", "bm_2", "bm_3"}

    def test_not_ready_benchmark_is_rejected(self, benchmark_a) -> None:
        pending = (make_benchmark("bm_p", status=BenchmarkStatus.PROCESSING), [])

        with pytest.raises(BenchmarkNotReadyError) as exc_info:
            compare_benchmarks([benchmark_a, pending])
        assert exc_info.value.status_code == 409

    def test_benchmark_without_records_is_rejected(self, benchmark_a) -> None:
        empty = (make_benchmark("bm_empty", name="Empty"), [])

        with pytest.raises(AnalysisValidationError, match="bm_empty") as exc_info:
            compare_benchmarks([benchmark_a, empty])
        assert exc_info.value.status_code == 400
        assert exc_info.value.field == "benchmarks"

    def test_duplicate_benchmark_is_rejected(self, benchmark_a) -> None:
        with pytest.raises(AnalysisValidationError, match="Duplicate"):
            compare_benchmarks([benchmark_a, benchmark_a])

    def test_unknown_metric_is_rejected(self, benchmark_a, benchmark_b) -> None:
        with pytest.raises(AnalysisValidationError):
            compare_benchmarks([benchmark_a, benchmark_b], ["eqTotal"])


class TestSignificantDifferences:
    """Average absolute percent over non-base columns."""

    def test_zero_base_mean_has_undefined_percent(self) -> None:
        base = stats_from_values([-1.0, 1.0], "K")
        other = stats_from_values([2.0, 4.0], "K")

        diff = metric_difference(base, other)

        assert diff.meanDiff == pytest.approx(3.0)
        assert diff.meanDiffPercent is None

    def test_threshold_and_ordering(self) -> None:
        columns = [
            (ComparisonColumn(id="base", label="Base", sampleSize=2), [
                make_record(K=100.0, C=100.0, G=100.0), make_record(K=100.0, C=100.0, G=100.0),
            ]),
            (ComparisonColumn(id="a", label="A", sampleSize=2), [
                make_record(K=110.0, C=104.0, G=80.0), make_record(K=110.0, C=104.0, G=80.0),
            ]),
            (ComparisonColumn(id="b", label="B", sampleSize=2), [
                make_record(K=90.0, C=104.0, G=80.0), make_record(K=90.0, C=104.0, G=80.0),
            ]),
        ]

        result = compare_columns(columns, ["K", "C", "G"])

        assert [(s.metric, s.avgAbsDiffPercent) for s in result.significantDifferences] == [
            ("G", pytest.approx(20.0)),
            ("K", pytest.approx(10.0)),
        ]

    def test_exact_threshold_is_not_significant(self) -> None:
        columns = [
            (ComparisonColumn(id="base", label="Base", sampleSize=1), [make_record(EL=100.0)]),
            (ComparisonColumn(id="x", label="X", sampleSize=1), [make_record(EL=105.0)]),
        ]

        assert compare_columns(columns, ["EL"]).significantDifferences == []

    def test_validate_column_count(self) -> None:
        validate_column_count(2, "segments")
        validate_column_count(4, "segments")
        with pytest.raises(AnalysisValidationError):
            validate_column_count(1, "segments")


class TestCompareSegments:
    """compare_segments on the synthetic benchmark."""

    def test_segments_filter_records(self, sample_records, policy) -> None:
        segments = [
            SegmentFilter(name="Brazil", country="Brazil"),
            SegmentFilter(name="Mexico 2024", country="Mexico", year=2024),
        ]

        result = compare_segments(sample_records, "bm_test", segments, ["EL"], policy)

        assert result.mode == "segments"
        assert result.baseColumn == "Brazil"
        assert [c.sampleSize for c in result.columns] == [50, 50]
        assert result.columns[1].filters == {"country": "Mexico", "year": 2024}
        assert result.differences["EL"]["Brazil"].meanDiff == 0

    def test_segment_summaries(self, sample_records, policy) -> None:
        segments = [
            SegmentFilter(name="All"),
            SegmentFilter(name="Managers", jobRole="Manager"),
        ]

        result = compare_segments(sample_records, "bm_test", segments, ["K"], policy)

        summary = result.segments[1]
        assert summary.name == "Managers"
        assert summary.filters == {"jobRole": "Manager"}
        assert summary.sampleSize == 67
        assert summary.avgK is not None
        assert len(summary.topCompetencies) == 3
        means = [c.mean for c in summary.topCompetencies]
        assert means == sorted(means, reverse=True)
        assert result.segments[0].sampleSize == len(sample_records)

    def test_empty_segment_is_rejected(self, sample_records) -> None:
        segments = [SegmentFilter(name="Brazil", country="Brazil"), SegmentFilter(name="Mars", country="Mars")]

        with pytest.raises(AnalysisValidationError, match="Mars"):
            compare_segments(sample_records, "bm_test", segments)

    def test_duplicate_segment_names_are_rejected(self, sample_records) -> None:
        segments = [SegmentFilter(name="X", country="Brazil"), SegmentFilter(name="X", country="Spain")]

        with pytest.raises(AnalysisValidationError, match="Duplicate"):
            compare_segments(sample_records, "bm_test", segments)

    def test_single_segment_is_rejected(self, sample_records) -> None:
        with pytest.raises(AnalysisValidationError):
            compare_segments(sample_records, "bm_test", [SegmentFilter(name="All")])

    def test_segment_values_match_exactly(self, record_factory) -> None:
        records = [
            record_factory(country="Peru", K=100.0),
            record_factory(country=" Peru", K=90.0),
            record_factory(country="Peru ", K=80.0),
        ]
        segments = [
            SegmentFilter(name="Peru", country="Peru"),
            SegmentFilter(name="Padded", country="Peru "),
        ]

        result = compare_segments(records, "bm_test", segments, ["K"])

        assert [c.sampleSize for c in result.columns] == [1, 1]
        assert result.statistics["K"]["Padded"].mean == 80.0

    def test_filter_keeps_given_value(self, record_factory) -> None:
        segment = SegmentFilter(name=" Peru ", country=" Peru")

        assert segment.country == " Peru"
        assert segment.matches(record_factory(country=" Peru"))
        assert not segment.matches(record_factory(country="Peru"))

    def test_empty_filter_matches_everything(self, record_factory) -> None:
        assert PopulationFilter().matches(record_factory())
        assert PopulationFilter().active_filters() == {}


class TestExportCsv:
    """export_comparison_csv layout."""

    def test_header_and_rows(self, benchmark_a, benchmark_b) -> None:
        result = compare_benchmarks([benchmark_b, benchmark_a], ["K", "EL"])

        csv_text = export_comparison_csv(result)
        lines = csv_text.strip().split("\n")

        assert lines[0] == "Metric,Benchmark B,Benchmark A,Difference %"
        assert lines[1] == "Know Yourself,110.00,100.00,-9.09%"
        assert lines[2] == "Enhance Emotional Literacy,-,-,-"

    def test_round_trips_through_pandas(self, sample_records, policy) -> None:
        segments = [
            SegmentFilter(name="Brazil", country="Brazil"),
            SegmentFilter(name="Mexico", country="Mexico"),
            SegmentFilter(name="Spain", country="Spain"),
        ]
        result = compare_segments(sample_records, "bm_test", segments, policy=policy)

        frame = pd.read_csv(io.StringIO(export_comparison_csv(result)))

        assert list(frame.columns) == ["Metric", "Brazil", "Mexico", "Spain", "Difference %"]
        assert len(frame) == len(COMPARISON_METRIC_KEYS)


@pytest.fixture(scope="module")
def other_records():
    return build_sample_records(count=120, seed=11, benchmark_id="bm_other")


class TestCompareCrossSegments:
    """compare_cross_segments across two benchmarks."""

    def test_columns_name_their_benchmark(self, sample_records, other_records, policy) -> None:
        global_2025 = make_benchmark("bm_test", name="Global 2025")
        latam_2024 = make_benchmark("bm_other", name="Latin America 2024")
        populations = [
            (CrossSegmentFilter(name="Brazil 2025", benchmarkId="bm_test", country="Brazil"),
             global_2025, sample_records),
            (CrossSegmentFilter(name="Mexico 2024", benchmarkId="bm_other", country="Mexico"),
             latam_2024, other_records),
        ]

        result = compare_cross_segments(populations, ["EL", "K"], policy)

        assert result.mode == "cross_segments"
        assert result.baseColumn == "Brazil 2025"
        assert [c.benchmarkId for c in result.columns] == ["bm_test", "bm_other"]
        assert [c.sampleSize for c in result.columns] == [50, 30]
        assert [s.benchmarkName for s in result.segments] == ["Global 2025", "Latin America 2024"]
        assert result.differences["EL"]["Brazil 2025"].meanDiff == 0

    def test_segments_may_share_a_benchmark(self, sample_records, policy) -> None:
        benchmark = make_benchmark("bm_test")
        populations = [
            (CrossSegmentFilter(name=name, benchmarkId="bm_test", country=name), benchmark, sample_records)
            for name in ("Spain", "Mexico")
        ]

        result = compare_cross_segments(populations, ["K"], policy)

        assert [c.id for c in result.columns] == ["Spain", "Mexico"]

    def test_mismatched_benchmark_is_rejected(self, sample_records) -> None:
        benchmark = make_benchmark("bm_test")
        populations = [
            (CrossSegmentFilter(name="A", benchmarkId="bm_test"), benchmark, sample_records),
            (CrossSegmentFilter(name="B", benchmarkId="bm_other"), benchmark, sample_records),
        ]

        with pytest.raises(AnalysisValidationError, match="bm_other"):
            compare_cross_segments(populations)

    def test_not_ready_benchmark_is_rejected(self, sample_records) -> None:
        ready = make_benchmark("bm_test")
        failed = make_benchmark("bm_failed", status=BenchmarkStatus.FAILED)
        populations = [
            (CrossSegmentFilter(name="A", benchmarkId="bm_test"), ready, sample_records),
            (CrossSegmentFilter(name="B", benchmarkId="bm_failed"), failed, []),
        ]

        with pytest.raises(BenchmarkNotReadyError):
            compare_cross_segments(populations)

    def test_empty_segment_is_rejected(self, sample_records, other_records) -> None:
        populations = [
            (CrossSegmentFilter(name="Brazil", benchmarkId="bm_test", country="Brazil"),
             make_benchmark("bm_test"), sample_records),
            (CrossSegmentFilter(name="Chile", benchmarkId="bm_other", country="Chile"),
             make_benchmark("bm_other"), other_records),
        ]

        with pytest.raises(AnalysisValidationError, match="Chile"):
            compare_cross_segments(populations)

    def test_column_count_is_validated(self, sample_records) -> None:
        single = [(CrossSegmentFilter(name="A", benchmarkId="bm_test"), make_benchmark("bm_test"), sample_records)]

        with pytest.raises(AnalysisValidationError):
            compare_cross_segments(single)


class TestTopPerformerMatrix:
    """build_top_performer_matrix over published results."""

    @pytest.fixture(scope="class")
    def published(self, sample_records, other_records):
        policy = AnalysisPolicy(max_workers=1)
        return {
            "bm_test": generate_all_top_performers(sample_records, "bm_test", policy),
            "bm_other": generate_all_top_performers(other_records, "bm_other", policy),
        }

    def test_outcome_by_benchmark(self, published) -> None:
        matrix = build_top_performer_matrix(published, ["effectiveness"])

        assert list(matrix) == ["effectiveness"]
        assert set(matrix["effectiveness"]) == {"bm_test", "bm_other"}

        cell = matrix["effectiveness"]["bm_test"]
        source = next(r for r in published["bm_test"] if r.outcomeKey == "effectiveness")
        assert cell.sampleSize == source.sampleSize
        assert cell.avgK == source.competencyProfile["K"]
        assert len(cell.topCompetencies) == 3
        assert all(e.kind == DimensionKind.COMPETENCY for e in cell.topCompetencies)
        assert cell.topCompetencies[0].key == "EL"
        assert all(e.kind == DimensionKind.TALENT for e in cell.topTalents)

    def test_defaults_to_every_outcome(self, published) -> None:
        matrix = build_top_performer_matrix(published)

        assert len(matrix) == 12

    def test_no_data_results_are_left_out(self) -> None:
        no_data = TopPerformerResult(benchmarkId="bm_x", outcomeKey="health", status=ResultStatus.NO_DATA)

        assert build_top_performer_matrix({"bm_x": [no_data]}) == {}

    def test_unknown_outcome_is_rejected(self, published) -> None:
        with pytest.raises(AnalysisValidationError, match="EL"):
            build_top_performer_matrix(published, ["EL"])
