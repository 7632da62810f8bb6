"""
API package initialization.

This package contains the FastAPI router modules of the analysis engine:
- benchmarks: Statistics, top performers, correlations, comparisons and
  data quality of benchmarks
"""

from fastapi import APIRouter

from benchmark_engine.api.benchmarks import router as benchmarks_router

# Create main API router
api_router = APIRouter()

# benchmarks router has its own /benchmarks prefix
api_router.include_router(benchmarks_router)

__all__ = [
    "api_router",
    "benchmarks_router",
]
