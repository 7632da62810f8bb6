"""
FastAPI dependency injection module for the benchmark analysis engine.

Endpoint handlers receive their collaborators through these dependencies so
tests can replace them with `app.dependency_overrides`.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: The cached Settings singleton
- get_policy_dependency / PolicyDep: The AnalysisPolicy built from settings
- get_db_session / DBSessionDep: A pooled asyncpg connection
- get_benchmark_repository / RepositoryDep: BenchmarkRepository over the pool

Usage Examples:
    @router.get("/{benchmark_id}/data-quality")
    async def data_quality(
        benchmark_id: str,
        repository: RepositoryDep,
        policy: PolicyDep,
    ) -> DataQualityReport:
        ...

    # In tests
    app.dependency_overrides[get_benchmark_repository] = lambda: fake_repository
"""

from typing import Annotated, AsyncGenerator

from asyncpg import Connection
from fastapi import Depends

from benchmark_engine.core.config import AnalysisPolicy, Settings, get_settings
from benchmark_engine.core.database import get_db_pool
from benchmark_engine.services.repository import BenchmarkRepository


# =============================================================================
# Settings Dependencies
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so it can be overridden in tests:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


def get_policy_dependency(
    settings: Annotated[Settings, Depends(get_settings_dependency)],
) -> AnalysisPolicy:
    """Return the analysis policy derived from the current settings."""
    return settings.analysis_policy()


# =============================================================================
# Database Dependencies
# =============================================================================

async def get_db_session() -> AsyncGenerator[Connection, None]:
    """
    Yield an async database connection from the pool.

    The connection is released back to the pool when the endpoint completes,
    regardless of whether the operation succeeded or raised an exception.
    """
    pool = await get_db_pool()
    async with pool.acquire() as connection:
        yield connection


async def get_benchmark_repository() -> BenchmarkRepository:
    """Return a BenchmarkRepository bound to the shared pool."""
    pool = await get_db_pool()
    return BenchmarkRepository(pool)


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

PolicyDep = Annotated[AnalysisPolicy, Depends(get_policy_dependency)]

DBSessionDep = Annotated[Connection, Depends(get_db_session)]

RepositoryDep = Annotated[BenchmarkRepository, Depends(get_benchmark_repository)]
