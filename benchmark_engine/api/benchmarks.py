"""
FastAPI router module for benchmark analysis.

Exposes one endpoint per analysis component, plus retrieval of published
results, CSV export of comparisons and tabular export of a benchmark:

    GET  /benchmarks/{id}/statistics
    GET  /benchmarks/{id}/statistics/grouped?groupBy=
    POST /benchmarks/{id}/top-performers/generate?outcome=[&country=&region=...]
    POST /benchmarks/{id}/top-performers/generate-all
    GET  /benchmarks/{id}/top-performers/{outcome}
    POST /benchmarks/{id}/correlations/calculate
    GET  /benchmarks/{id}/correlations
    POST /benchmarks/compare[?format=csv]
    POST /benchmarks/{id}/compare-segments[?format=csv]
    POST /benchmarks/compare-cross-segments[?format=csv]
    GET  /benchmarks/{id}/data-quality
    GET  /benchmarks/{id}/export?type=stats|top-performers|correlations[&format=json]

Every handler loads a READY benchmark through the repository, runs the
synchronous engine in the threadpool, and maps engine errors to HTTP:
    AnalysisValidationError -> 400, BenchmarkNotFoundError -> 404,
    BenchmarkNotReadyError -> 409, anything else -> 500.
"""

import logging
from datetime import date
from typing import Annotated, Dict, List, Optional, Tuple

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool

from benchmark_engine.core.dependencies import PolicyDep, RepositoryDep
from benchmark_engine.core.errors import AnalysisValidationError, BenchmarkNotFoundError
from benchmark_engine.models.catalog import is_outcome
from benchmark_engine.models.enums import ExportType
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    Benchmark,
    CompareBenchmarksRequest,
    CompareCrossSegmentsRequest,
    CompareSegmentsRequest,
    ComparisonResult,
    CorrelationResponse,
    DataQualityReport,
    ExportMetadata,
    ExportResponse,
    GroupedStatisticsResponse,
    OverallStatisticsResponse,
    PopulationFilter,
    TopPerformerResult,
)
from benchmark_engine.services.comparison import (
    build_top_performer_matrix,
    compare_benchmarks,
    compare_cross_segments,
    compare_segments,
    export_comparison_csv,
    resolve_matrix_outcomes,
    validate_column_count,
)
from benchmark_engine.services.correlations import (
    calculate_correlations,
    group_correlations_by_outcome,
)
from benchmark_engine.services.data_quality import analyze_data_quality
from benchmark_engine.services.export import (
    EXPORT_COLUMNS,
    correlation_export_rows,
    export_filename,
    rows_to_csv,
    statistics_export_rows,
    top_performer_export_rows,
)
from benchmark_engine.services.grouped_statistics import compute_grouped_statistics
from benchmark_engine.services.repository import BenchmarkRepository
from benchmark_engine.services.statistics import compute_overall_statistics
from benchmark_engine.services.top_performers import (
    generate_all_top_performers,
    generate_top_performers,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Router Definition
# =============================================================================

router = APIRouter(prefix="/benchmarks", tags=["benchmarks"])


# =============================================================================
# Helper Functions
# =============================================================================


def _http_error(error: AnalysisValidationError) -> HTTPException:
    """Convert an engine validation error into the matching HTTPException."""
    logger.warning(f"Rejected request: {error.message}")
    return HTTPException(status_code=error.status_code, detail=error.message)


async def _load(
    repository: BenchmarkRepository,
    benchmark_id: str,
    population_filter: Optional[PopulationFilter] = None,
) -> Tuple[Benchmark, List[AssessmentRecord]]:
    benchmark = await repository.load_ready_benchmark(benchmark_id)
    filters = population_filter.active_filters() if population_filter else None
    records = await repository.fetch_records(benchmark_id, filters=filters or None)
    return benchmark, records


def _csv_response(result: ComparisonResult) -> Response:
    filename = f"comparison-{result.mode}-{date.today().isoformat()}.csv"
    return Response(
        content=export_comparison_csv(result),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _validate_format(format: str) -> None:
    if format not in ("json", "csv"):
        raise AnalysisValidationError(f"Unsupported format '{format}'", field="format")


def _export_type(value: str) -> ExportType:
    try:
        return ExportType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ExportType)
        raise AnalysisValidationError(
            f"Unsupported export type '{value}' (expected one of: {allowed})", field="type"
        )


def population_filter_params(
    country: Optional[str] = Query(default=None),
    region: Optional[str] = Query(default=None),
    sector: Optional[str] = Query(default=None),
    jobFunction: Optional[str] = Query(default=None),
    jobRole: Optional[str] = Query(default=None),
    ageRange: Optional[str] = Query(default=None),
    gender: Optional[str] = Query(default=None),
    education: Optional[str] = Query(default=None),
    year: Optional[int] = Query(default=None),
) -> PopulationFilter:
    """
    Demographic filters from the query string.

    Empty parameters (`?country=`) are treated as absent, the way admin
    forms submit an unselected field; any other value is matched exactly.
    """
    values: Dict[str, Optional[str]] = {
        "country": country,
        "region": region,
        "sector": sector,
        "jobFunction": jobFunction,
        "jobRole": jobRole,
        "ageRange": ageRange,
        "gender": gender,
        "education": education,
    }
    return PopulationFilter(
        year=year,
        **{key: value for key, value in values.items() if value},
    )


PopulationFilterDep = Annotated[PopulationFilter, Depends(population_filter_params)]


# =============================================================================
# Statistics
# =============================================================================


@router.get("/{benchmark_id}/statistics", response_model=OverallStatisticsResponse)
async def get_statistics(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    metrics: Optional[List[str]] = Query(default=None, description="Metric subset"),
) -> OverallStatisticsResponse:
    """
    Descriptive statistics of every catalogue metric over the benchmark.

    Metrics without values are returned with status "no_data".
    """
    try:
        _, records = await _load(repository, benchmark_id)
        statistics = await run_in_threadpool(
            compute_overall_statistics, records, metrics, policy
        )
        return OverallStatisticsResponse(
            benchmarkId=benchmark_id,
            totalRecords=len(records),
            statistics=statistics,
        )
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error computing statistics for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute statistics: {str(e)}")


@router.get("/{benchmark_id}/statistics/grouped", response_model=GroupedStatisticsResponse)
async def get_grouped_statistics(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    groupBy: str = Query(..., description="Categorical attribute to group by"),
    metrics: Optional[List[str]] = Query(default=None, description="Metric subset"),
) -> GroupedStatisticsResponse:
    """
    Statistics per distinct value of a categorical attribute.

    Records without a value are reported in the "Unknown" group.
    """
    try:
        _, records = await _load(repository, benchmark_id)
        groups = await run_in_threadpool(
            compute_grouped_statistics, records, groupBy, metrics, policy
        )
        return GroupedStatisticsResponse(
            benchmarkId=benchmark_id,
            groupBy=groupBy,
            totalRecords=len(records),
            groups=groups,
        )
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error grouping statistics for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute grouped statistics: {str(e)}")


# =============================================================================
# Top Performers
# =============================================================================


@router.post("/{benchmark_id}/top-performers/generate", response_model=TopPerformerResult)
async def post_generate_top_performers(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    population_filter: PopulationFilterDep,
    outcome: str = Query(..., description="Outcome metric key"),
) -> TopPerformerResult:
    """
    Generate the top-performer profile of one outcome.

    Without demographic filters the result is published, replacing any
    previous result for the outcome. A filtered result (e.g. ?country=Chile)
    is computed within the filtered population and returned only; the
    published profile stays the whole-benchmark one.
    """
    try:
        if not is_outcome(outcome):
            raise AnalysisValidationError(f"Unknown outcome '{outcome}'", field="outcome")

        _, records = await _load(repository, benchmark_id, population_filter)
        result = await run_in_threadpool(
            generate_top_performers, records, benchmark_id, outcome, policy, population_filter
        )
        if not result.filters:
            await repository.replace_top_performer(result)
        return result

    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            f"Error generating top performers for {benchmark_id}/{outcome}: {e}",
            exc_info=True,
        )
        raise HTTPException(status_code=500, detail=f"Failed to generate top performers: {str(e)}")


@router.post(
    "/{benchmark_id}/top-performers/generate-all",
    response_model=List[TopPerformerResult],
)
async def post_generate_all_top_performers(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    population_filter: PopulationFilterDep,
) -> List[TopPerformerResult]:
    """
    Generate top performers for every outcome.

    Unfiltered runs replace the published set; filtered runs are returned
    only.
    """
    try:
        _, records = await _load(repository, benchmark_id, population_filter)
        results = await run_in_threadpool(
            generate_all_top_performers, records, benchmark_id, policy, population_filter
        )
        if not population_filter.active_filters():
            await repository.replace_top_performers(benchmark_id, results)
        return results
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating all top performers for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate top performers: {str(e)}")


@router.get("/{benchmark_id}/top-performers/{outcome}", response_model=TopPerformerResult)
async def get_top_performers(
    benchmark_id: str,
    outcome: str,
    repository: RepositoryDep,
) -> TopPerformerResult:
    """
    Return the published top-performer profile of an outcome.

    404 means the profile was never generated; a generated outcome without
    data is returned with status "no_data".
    """
    try:
        if not is_outcome(outcome):
            raise AnalysisValidationError(f"Unknown outcome '{outcome}'", field="outcome")

        if await repository.fetch_benchmark_meta(benchmark_id) is None:
            raise BenchmarkNotFoundError(benchmark_id)

        result = await repository.fetch_top_performer(benchmark_id, outcome)
        if result is None:
            raise HTTPException(
                status_code=404,
                detail=f"Top performers for {outcome} have not been generated for benchmark {benchmark_id}",
            )
        return result
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching top performers for {benchmark_id}/{outcome}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch top performers: {str(e)}")


# =============================================================================
# Correlations
# =============================================================================


@router.post("/{benchmark_id}/correlations/calculate", response_model=CorrelationResponse)
async def post_calculate_correlations(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    outcomes: Optional[List[str]] = Query(default=None, description="Outcome subset"),
    byYear: bool = Query(default=False, description="Also correlate within each year"),
) -> CorrelationResponse:
    """Calculate correlations and replace the published set."""
    try:
        _, records = await _load(repository, benchmark_id)
        results = await run_in_threadpool(
            calculate_correlations, records, benchmark_id, outcomes, byYear, policy
        )
        await repository.replace_correlations(benchmark_id, results)
        return CorrelationResponse(
            benchmarkId=benchmark_id,
            totalCorrelations=len(results),
            correlations=results,
            byOutcome=group_correlations_by_outcome(results),
        )
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error calculating correlations for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to calculate correlations: {str(e)}")


@router.get("/{benchmark_id}/correlations", response_model=CorrelationResponse)
async def get_correlations(
    benchmark_id: str,
    repository: RepositoryDep,
) -> CorrelationResponse:
    """Return the published correlations of a benchmark."""
    try:
        if await repository.fetch_benchmark_meta(benchmark_id) is None:
            raise BenchmarkNotFoundError(benchmark_id)

        results = await repository.fetch_correlations(benchmark_id)
        return CorrelationResponse(
            benchmarkId=benchmark_id,
            totalCorrelations=len(results),
            correlations=results,
            byOutcome=group_correlations_by_outcome(results),
        )
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching correlations for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch correlations: {str(e)}")


# =============================================================================
# Comparison
# =============================================================================


@router.post("/compare", response_model=ComparisonResult)
async def post_compare_benchmarks(
    repository: RepositoryDep,
    policy: PolicyDep,
    request: CompareBenchmarksRequest = Body(...),
    format: str = Query(default="json", description="json or csv"),
):
    """
    Compare 2 to 4 benchmarks; the first id is the base column.

    The result carries the published top-performer profiles of each
    benchmark as an outcome x benchmark matrix (restricted to
    request.outcomes when given). With format=csv the comparison is
    returned as a CSV attachment.
    """
    try:
        _validate_format(format)
        validate_column_count(len(request.benchmarkIds), "benchmarks")
        resolve_matrix_outcomes(request.outcomes)

        populations = []
        for benchmark_id in dict.fromkeys(request.benchmarkIds):
            populations.append(await _load(repository, benchmark_id))
        if len(populations) != len(request.benchmarkIds):
            raise AnalysisValidationError("Benchmark ids must be distinct", field="benchmarkIds")

        result = await run_in_threadpool(
            compare_benchmarks, populations, request.metrics, policy
        )
        published = {
            benchmark.id: await repository.fetch_top_performers(benchmark.id)
            for benchmark, _ in populations
        }
        result.topPerformers = build_top_performer_matrix(published, request.outcomes)

        if format == "csv":
            return _csv_response(result)
        return result

    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error comparing benchmarks {request.benchmarkIds}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compare benchmarks: {str(e)}")


@router.post("/{benchmark_id}/compare-segments", response_model=ComparisonResult)
async def post_compare_segments(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    request: CompareSegmentsRequest = Body(...),
    format: str = Query(default="json", description="json or csv"),
):
    """
    Compare 2 to 4 segments of one benchmark; the first segment is the base.

    With format=csv the comparison is returned as a CSV attachment.
    """
    try:
        _validate_format(format)
        validate_column_count(len(request.segments), "segments")

        _, records = await _load(repository, benchmark_id)
        result = await run_in_threadpool(
            compare_segments, records, benchmark_id, request.segments, request.metrics, policy
        )
        if format == "csv":
            return _csv_response(result)
        return result
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error comparing segments of {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compare segments: {str(e)}")


@router.post("/compare-cross-segments", response_model=ComparisonResult)
async def post_compare_cross_segments(
    repository: RepositoryDep,
    policy: PolicyDep,
    request: CompareCrossSegmentsRequest = Body(...),
    format: str = Query(default="json", description="json or csv"),
):
    """
    Compare 2 to 4 segments, each cut from the benchmark it names.

    Every source benchmark must be READY. With format=csv the comparison is
    returned as a CSV attachment.
    """
    try:
        _validate_format(format)
        validate_column_count(len(request.segments), "segments")

        loaded: Dict[str, Tuple[Benchmark, List[AssessmentRecord]]] = {}
        for segment in request.segments:
            if segment.benchmarkId not in loaded:
                loaded[segment.benchmarkId] = await _load(repository, segment.benchmarkId)

        populations = [
            (segment, *loaded[segment.benchmarkId]) for segment in request.segments
        ]
        result = await run_in_threadpool(
            compare_cross_segments, populations, request.metrics, policy
        )
        if format == "csv":
            return _csv_response(result)
        return result
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error comparing cross-benchmark segments: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compare segments: {str(e)}")



# =============================================================================
# Data Quality
# =============================================================================


@router.get("/{benchmark_id}/data-quality", response_model=DataQualityReport)
async def get_data_quality(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
) -> DataQualityReport:
    """Completeness, duplicate, outlier and reliability report of a benchmark."""
    try:
        _, records = await _load(repository, benchmark_id)
        return await run_in_threadpool(analyze_data_quality, records, benchmark_id, policy)
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error analyzing data quality for {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to analyze data quality: {str(e)}")


# =============================================================================
# Export
# =============================================================================


@router.get("/{benchmark_id}/export", response_model=ExportResponse)
async def get_export(
    benchmark_id: str,
    repository: RepositoryDep,
    policy: PolicyDep,
    type: str = Query(default="stats", description="stats, top-performers or correlations"),
    format: str = Query(default="csv", description="csv or json"),
):
    """
    Export benchmark results as a CSV download or as JSON rows.

    stats are computed live and need a READY benchmark; top-performers and
    correlations export what is currently published and only need the
    benchmark to exist.
    """
    try:
        export_type = _export_type(type)
        _validate_format(format)

        if export_type == ExportType.STATS:
            benchmark, records = await _load(repository, benchmark_id)
            statistics = await run_in_threadpool(
                compute_overall_statistics, records, None, policy
            )
            rows = statistics_export_rows(statistics)
        else:
            benchmark = await repository.fetch_benchmark_meta(benchmark_id)
            if benchmark is None:
                raise BenchmarkNotFoundError(benchmark_id)
            if export_type == ExportType.TOP_PERFORMERS:
                rows = top_performer_export_rows(await repository.fetch_top_performers(benchmark_id))
            else:
                rows = correlation_export_rows(await repository.fetch_correlations(benchmark_id))

        logger.info(f"Exporting {len(rows)} {export_type.value} rows of {benchmark_id} as {format}")
        if format == "csv":
            filename = export_filename(benchmark.name, export_type, date.today())
            return Response(
                content=rows_to_csv(rows, EXPORT_COLUMNS[export_type]),
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{filename}"'},
            )
        return ExportResponse(
            data=rows,
            metadata=ExportMetadata(
                benchmarkId=benchmark.id,
                benchmarkName=benchmark.name,
                type=export_type,
                totalRecords=len(rows),
            ),
        )
    except AnalysisValidationError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error exporting {type} of {benchmark_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to export benchmark: {str(e)}")
