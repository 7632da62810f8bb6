"""
Error taxonomy of the analysis engine.

Engine functions raise these for malformed requests; "no data" and undefined
statistics are result shapes, not exceptions. The API layer maps each class
to an HTTP status via `status_code`.

- AnalysisValidationError (400): Wrong column count, duplicate columns, empty
  segment, unknown metric / outcome / group-by key
- BenchmarkNotFoundError (404): Benchmark id does not exist
- BenchmarkNotReadyError (409): Benchmark exists but is not READY
"""

from typing import Optional

from benchmark_engine.models.enums import BenchmarkStatus


class AnalysisValidationError(ValueError):
    """Request parameters rejected before any computation runs."""

    status_code: int = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class BenchmarkNotFoundError(AnalysisValidationError):
    status_code: int = 404

    def __init__(self, benchmark_id: str):
        super().__init__(f"Benchmark {benchmark_id} not found", field="benchmarkId")
        self.benchmark_id = benchmark_id


class BenchmarkNotReadyError(AnalysisValidationError):
    status_code: int = 409

    def __init__(self, benchmark_id: str, status: BenchmarkStatus):
        super().__init__(
            f"Benchmark {benchmark_id} is {status.value}; only READY benchmarks can be analyzed",
            field="benchmarkId",
        )
        self.benchmark_id = benchmark_id
        self.status = status
