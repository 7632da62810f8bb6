"""
Services package for the benchmark analysis engine.

Analysis components, leaf first:
- statistics: Descriptive statistics per metric
- grouped_statistics: Statistics partitioned by a categorical dimension
- top_performers: P90 cohort profiling with Cohen's d ranking
- correlations: Pillar/competency vs outcome Pearson correlations
- comparison: N-way benchmark, segment and cross-benchmark segment
  comparison, published top-performer matrix, CSV export
- data_quality: Completeness, duplicates, outliers, reliability, score
- export: Statistics, top-performer and correlation rows for CSV / JSON export

Data access:
- repository: BenchmarkRepository over the asyncpg pool

All analysis functions are pure: they take records and an AnalysisPolicy and
return result models.

Usage:
    from benchmark_engine.services import (
        compute_statistics,
        generate_top_performers,
        analyze_data_quality,
    )
"""

from benchmark_engine.services.statistics import (
    compute_statistics,
    compute_overall_statistics,
    extract_metric_values,
    percentile,
    stats_from_values,
)
from benchmark_engine.services.grouped_statistics import (
    compute_grouped_statistics,
    UNKNOWN_GROUP,
)
from benchmark_engine.services.top_performers import (
    cohens_d,
    generate_top_performers,
    generate_all_top_performers,
    generate_top_performer_insights,
    interpret_effect_size,
)
from benchmark_engine.services.correlations import (
    calculate_correlations,
    group_correlations_by_outcome,
    pearson,
)
from benchmark_engine.services.comparison import (
    compare_columns,
    compare_benchmarks,
    compare_segments,
    compare_cross_segments,
    build_top_performer_matrix,
    export_comparison_csv,
)
from benchmark_engine.services.data_quality import (
    analyze_data_quality,
    detect_outliers,
)
from benchmark_engine.services.export import (
    correlation_export_rows,
    rows_to_csv,
    statistics_export_rows,
    top_performer_export_rows,
)
from benchmark_engine.services.repository import BenchmarkRepository


__all__ = [
    # Statistics
    "compute_statistics",
    "compute_overall_statistics",
    "extract_metric_values",
    "percentile",
    "stats_from_values",
    # Grouped statistics
    "compute_grouped_statistics",
    "UNKNOWN_GROUP",
    # Top performers
    "cohens_d",
    "generate_top_performers",
    "generate_all_top_performers",
    "generate_top_performer_insights",
    "interpret_effect_size",
    # Correlations
    "calculate_correlations",
    "group_correlations_by_outcome",
    "pearson",
    # Comparison
    "compare_columns",
    "compare_benchmarks",
    "compare_segments",
    "compare_cross_segments",
    "build_top_performer_matrix",
    "export_comparison_csv",
    # Data quality
    "analyze_data_quality",
    "detect_outliers",
    # Export
    "correlation_export_rows",
    "rows_to_csv",
    "statistics_export_rows",
    "top_performer_export_rows",
    # Repository
    "BenchmarkRepository",
]
