"""
Pytest Configuration and Shared Fixtures for the Benchmark Analysis Engine Tests.

This module provides fixtures for all engine tests, supporting:
- Async test execution with pytest-asyncio
- Mock asyncpg pool fixtures for testing the repository without a database
- An in-memory repository for API and job tests
- Deterministic synthetic benchmark data matching the AssessmentRecord schema
- A FastAPI TestClient with repository and policy dependencies overridden

Synthetic Data:
    build_sample_records() produces a benchmark in which the "effectiveness"
    outcome is driven by EL (Enhance Emotional Literacy) plus noise, while
    every other competency and talent is independent noise. Tests rely on
    this to assert which dimension distinguishes top performers and which
    correlation is strong.
"""

import itertools
from typing import Any, Callable, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, Mock

import numpy as np
import pytest
from fastapi.testclient import TestClient

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.dependencies import get_benchmark_repository, get_policy_dependency
from benchmark_engine.models.catalog import COMPETENCY_KEYS, OUTCOME_KEYS, TALENT_KEYS
from benchmark_engine.models.enums import BenchmarkScope, BenchmarkStatus, BenchmarkType
from benchmark_engine.models.schemas import (
    AssessmentRecord,
    Benchmark,
    CorrelationResult,
    TopPerformerResult,
)
from benchmark_engine.services.repository import BenchmarkRepository


# ============================================================
# SAMPLE DATA BUILDERS
# ============================================================

_record_ids = itertools.count(1)


def make_record(benchmark_id: str = "bm_test", **fields: Any) -> AssessmentRecord:
    """Build an AssessmentRecord with a unique id and only the given fields set."""
    record_id = fields.pop("id", None) or f"rec_{next(_record_ids):06d}"
    return AssessmentRecord(id=record_id, benchmarkId=benchmark_id, **fields)


def build_sample_records(
    count: int = 200,
    seed: int = 7,
    benchmark_id: str = "bm_test",
) -> List[AssessmentRecord]:
    """
    Deterministic synthetic benchmark.

    - Competencies ~ N(100, 15); eqTotal and pillars are competency means.
    - effectiveness = 0.8 * EL + N(0, 8); other outcomes are independent.
    - Talents ~ N(50, 15); reliabilityIndex ~ U(0, 100).
    - Countries cycle over four values; years alternate 2023 / 2024.
    """
    rng = np.random.default_rng(seed)
    countries = ["Brazil", "Mexico", "Spain", "United States"]

    records = []
    for i in range(count):
        competencies = {key: float(rng.normal(100, 15)) for key in COMPETENCY_KEYS}
        outcomes = {key: float(rng.normal(100, 15)) for key in OUTCOME_KEYS}
        outcomes["effectiveness"] = 0.8 * competencies["EL"] + float(rng.normal(0, 8))
        talents = {key: float(rng.normal(50, 15)) for key in TALENT_KEYS}

        records.append(AssessmentRecord(
            id=f"{benchmark_id}_{i:04d}",
            benchmarkId=benchmark_id,
            sourceId=f"SRC-{i:04d}",
            country=countries[i % len(countries)],
            region="Latin America" if countries[i % len(countries)] in ("Brazil", "Mexico") else "Other",
            jobRole="Manager" if i % 3 == 0 else "Individual Contributor",
            year=2023 if i % 2 == 0 else 2024,
            eqTotal=float(np.mean(list(competencies.values()))),
            K=(competencies["EL"] + competencies["RP"]) / 2,
            C=(competencies["ACT"] + competencies["NE"] + competencies["IM"] + competencies["OP"]) / 4,
            G=(competencies["EMP"] + competencies["NG"]) / 2,
            brainStyle="Strategist" if i % 2 else "Guardian",
            reliabilityIndex=float(rng.uniform(0, 100)),
            **competencies,
            **outcomes,
            **talents,
        ))
    return records


def make_benchmark(
    benchmark_id: str = "bm_test",
    status: BenchmarkStatus = BenchmarkStatus.READY,
    name: Optional[str] = None,
) -> Benchmark:
    return Benchmark(
        id=benchmark_id,
        name=name or benchmark_id,
        type=BenchmarkType.ROWIVERSE,
        scope=BenchmarkScope.GLOBAL,
        status=status,
    )


# ============================================================
# IN-MEMORY REPOSITORY
# ============================================================

class FakeRepository(BenchmarkRepository):
    """
    In-memory BenchmarkRepository.

    Inherits load_ready_benchmark so the READY / not-found rules are the
    production ones; storage methods work on plain dicts.
    """

    def __init__(self) -> None:
        super().__init__(pool=None)
        self.benchmarks: Dict[str, Benchmark] = {}
        self.records: Dict[str, List[AssessmentRecord]] = {}
        self.top_performers: Dict[tuple, TopPerformerResult] = {}
        self.correlations: Dict[str, List[CorrelationResult]] = {}
        self.publish_calls: List[str] = []

    def add_benchmark(
        self,
        benchmark: Benchmark,
        records: Sequence[AssessmentRecord] = (),
    ) -> None:
        self.benchmarks[benchmark.id] = benchmark
        self.records[benchmark.id] = list(records)

    async def fetch_benchmark_meta(self, benchmark_id: str) -> Optional[Benchmark]:
        return self.benchmarks.get(benchmark_id)

    async def fetch_records(
        self,
        benchmark_id: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[AssessmentRecord]:
        records = self.records.get(benchmark_id, [])
        if filters:
            records = [
                r for r in records
                if all(getattr(r, key) == value for key, value in filters.items())
            ]
        return list(records)

    async def fetch_top_performer(
        self,
        benchmark_id: str,
        outcome_key: str,
    ) -> Optional[TopPerformerResult]:
        return self.top_performers.get((benchmark_id, outcome_key))

    async def fetch_top_performers(self, benchmark_id: str) -> List[TopPerformerResult]:
        return sorted(
            (r for (bid, _), r in self.top_performers.items() if bid == benchmark_id),
            key=lambda r: r.outcomeKey,
        )

    async def fetch_correlations(self, benchmark_id: str) -> List[CorrelationResult]:
        return list(self.correlations.get(benchmark_id, []))

    async def replace_top_performers(
        self,
        benchmark_id: str,
        results: Sequence[TopPerformerResult],
    ) -> int:
        self.publish_calls.append("top_performers")
        for key in [k for k in self.top_performers if k[0] == benchmark_id]:
            del self.top_performers[key]
        for result in results:
            self.top_performers[(benchmark_id, result.outcomeKey)] = result
        return len(results)

    async def replace_top_performer(self, result: TopPerformerResult) -> None:
        self.publish_calls.append("top_performer")
        self.top_performers[(result.benchmarkId, result.outcomeKey)] = result

    async def replace_correlations(
        self,
        benchmark_id: str,
        results: Sequence[CorrelationResult],
    ) -> int:
        self.publish_calls.append("correlations")
        self.correlations[benchmark_id] = list(results)
        return len(results)


# ============================================================
# DATA FIXTURES
# ============================================================

@pytest.fixture
def record_factory() -> Callable[..., AssessmentRecord]:
    """
    Factory for sparse AssessmentRecords.

    Usage:
        def test_something(record_factory):
            record = record_factory(eqTotal=100.0, country="Spain")
    """
    return make_record


@pytest.fixture(scope="session")
def sample_records() -> List[AssessmentRecord]:
    """200 deterministic synthetic records of benchmark 'bm_test'."""
    return build_sample_records()


@pytest.fixture
def policy() -> AnalysisPolicy:
    """Default analysis policy with a small worker pool."""
    return AnalysisPolicy(max_workers=2)


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Create a mock asyncpg connection pool for testing the repository.

    Returns:
        AsyncMock: Mocked asyncpg pool whose acquire() yields a connection
        with execute / executemany / fetch / fetchrow / fetchval mocked and a
        transaction() async context manager.

    Usage:
        async def test_query(mock_db_pool):
            conn = mock_db_pool.acquire.return_value.__aenter__.return_value
            conn.fetch.return_value = [{"id": "rec_1", "benchmarkId": "bm_1"}]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=None)
    conn.executemany = AsyncMock(return_value=None)
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    # conn.transaction() is a plain call returning an async context manager
    transaction_context = AsyncMock()
    transaction_context.__aenter__ = AsyncMock(return_value=None)
    transaction_context.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = Mock(return_value=transaction_context)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.close = AsyncMock(return_value=None)

    return pool


@pytest.fixture
def fake_repository(sample_records: List[AssessmentRecord]) -> FakeRepository:
    """
    In-memory repository holding:
        - bm_test: READY, the 200 sample records
        - bm_other: READY, 120 records from a different seed
        - bm_pending: PENDING, no records
    """
    repository = FakeRepository()
    repository.add_benchmark(make_benchmark("bm_test", name="Global 2025"), sample_records)
    repository.add_benchmark(
        make_benchmark("bm_other", name="Latin America 2024"),
        build_sample_records(count=120, seed=11, benchmark_id="bm_other"),
    )
    repository.add_benchmark(make_benchmark("bm_pending", status=BenchmarkStatus.PENDING))
    return repository


# ============================================================
# API CLIENT FIXTURE
# ============================================================

@pytest.fixture
def api_client(fake_repository: FakeRepository, policy: AnalysisPolicy):
    """
    FastAPI TestClient wired to the in-memory repository.

    The client is not entered as a context manager, so the lifespan (and
    its database pool) is never started.
    """
    from benchmark_engine.main import app

    app.dependency_overrides[get_benchmark_repository] = lambda: fake_repository
    app.dependency_overrides[get_policy_dependency] = lambda: policy

    yield TestClient(app)

    app.dependency_overrides.clear()
