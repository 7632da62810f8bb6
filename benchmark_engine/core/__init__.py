"""
Core infrastructure package for the benchmark analysis engine.

Provides:
- Configuration management and analysis policy via pydantic-settings
- Error taxonomy shared by the engine and the API layer
- Bounded worker pool for parallel analysis
- Async PostgreSQL connectivity via asyncpg

This module re-exports key components from submodules so other modules can use:

    from benchmark_engine.core import get_settings, AnalysisPolicy, parallel_map

FastAPI dependencies live in benchmark_engine.core.dependencies and are
imported from there directly, since they depend on the service layer.
"""

# =============================================================================
# Re-exports from benchmark_engine.core.config
# =============================================================================
from benchmark_engine.core.config import AnalysisPolicy, Settings, get_settings

# =============================================================================
# Re-exports from benchmark_engine.core.errors
# =============================================================================
from benchmark_engine.core.errors import (
    AnalysisValidationError,
    BenchmarkNotFoundError,
    BenchmarkNotReadyError,
)

# =============================================================================
# Re-exports from benchmark_engine.core.workers
# =============================================================================
from benchmark_engine.core.workers import parallel_map

# =============================================================================
# Re-exports from benchmark_engine.core.database
# =============================================================================
from benchmark_engine.core.database import init_db, close_db, get_db_pool


__all__ = [
    # Configuration
    'AnalysisPolicy',
    'Settings',
    'get_settings',
    # Errors
    'AnalysisValidationError',
    'BenchmarkNotFoundError',
    'BenchmarkNotReadyError',
    # Workers
    'parallel_map',
    # Database pool lifecycle
    'init_db',
    'close_db',
    'get_db_pool',
]
