"""
Tests for the core package: worker pool, settings, database pool and errors.
"""

import threading
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import ValidationError

from benchmark_engine.core import database
from benchmark_engine.core.config import AnalysisPolicy, Settings, get_settings
from benchmark_engine.core.errors import (
    AnalysisValidationError,
    BenchmarkNotFoundError,
    BenchmarkNotReadyError,
)
from benchmark_engine.core.workers import parallel_map, resolve_worker_count
from benchmark_engine.models.enums import BenchmarkStatus


class TestParallelMap:

    def test_results_follow_input_order(self) -> None:
        assert parallel_map(lambda x: x * x, list(range(20)), max_workers=4) == [x * x for x in range(20)]

    def test_empty_input(self) -> None:
        assert parallel_map(lambda x: x, [], max_workers=4) == []

    def test_single_worker_runs_inline(self) -> None:
        caller = threading.get_ident()

        idents = parallel_map(lambda _: threading.get_ident(), [1, 2, 3], max_workers=1)

        assert set(idents) == {caller}

    def test_task_error_propagates(self) -> None:
        def fail_on_three(x: int) -> int:
            if x == 3:
                raise ValueError("boom")
            return x

        with pytest.raises(ValueError, match="boom"):
            parallel_map(fail_on_three, [1, 2, 3, 4], max_workers=2)

    @pytest.mark.parametrize(
        "max_workers, tasks, expected",
        [(8, 3, 3), (2, 10, 2), (1, 5, 1), (4, 0, 1)],
    )
    def test_resolve_worker_count(self, max_workers: int, tasks: int, expected: int) -> None:
        assert resolve_worker_count(max_workers, tasks) == expected


class TestSettings:

    def test_defaults_build_default_policy(self, monkeypatch) -> None:
        monkeypatch.setenv("MAX_WORKERS", "3")

        policy = Settings(_env_file=None).analysis_policy()

        assert policy.max_workers == 3
        assert policy.top_performer_percentile == 90.0
        assert policy.effect_size_threshold == 0.5
        assert policy.quality_weight_completeness == 0.6

    def test_thresholds_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("EFFECT_SIZE_THRESHOLD", "0.8")
        monkeypatch.setenv("OUTLIER_Z_THRESHOLD", "3")

        policy = Settings(_env_file=None).analysis_policy()

        assert policy.effect_size_threshold == 0.8
        assert policy.outlier_z_threshold == 3.0

    def test_pattern_limits_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("PATTERN_LIMIT", "3")
        monkeypatch.setenv("TALENT_PATTERN_LIMIT", "2")
        monkeypatch.setenv("MIN_POPULATION_SAMPLE", "50")

        policy = Settings(_env_file=None).analysis_policy()

        assert policy.pattern_limit == 3
        assert policy.talent_pattern_limit == 2
        assert policy.min_population_sample == 50

    def test_zero_pattern_limit_is_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("PATTERN_LIMIT", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None).analysis_policy()

    def test_out_of_range_threshold_is_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("TOP_PERFORMER_PERCENTILE", "150")

        with pytest.raises(ValidationError):
            Settings(_env_file=None).analysis_policy()

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_policy_is_immutable(self) -> None:
        policy = AnalysisPolicy()

        with pytest.raises(ValidationError):
            policy.outlier_z_threshold = 1.0


@pytest.mark.asyncio
class TestDatabasePool:

    @pytest.fixture(autouse=True)
    def reset_pool(self):
        database._pool = None
        yield
        database._pool = None

    async def test_open_pool_uses_settings(self) -> None:
        settings = Settings(
            _env_file=None,
            database_url="postgresql://u:p@db:5432/bench",
            db_pool_min_size=1,
            db_pool_max_size=4,
            db_command_timeout=5.0,
        )
        fake_pool = Mock()

        with patch.object(database.asyncpg, "create_pool", AsyncMock(return_value=fake_pool)) as create:
            pool = await database.open_pool(settings)

        assert pool is fake_pool
        create.assert_awaited_once_with(
            dsn="postgresql://u:p@db:5432/bench",
            min_size=1,
            max_size=4,
            command_timeout=5.0,
        )

    async def test_get_db_pool_opens_once(self) -> None:
        fake_pool = Mock()

        with patch.object(database, "open_pool", AsyncMock(return_value=fake_pool)) as opener:
            first = await database.get_db_pool()
            second = await database.get_db_pool()

        assert first is second is fake_pool
        opener.assert_awaited_once()

    async def test_close_db_releases_pool(self) -> None:
        fake_pool = Mock()
        fake_pool.close = AsyncMock()
        database._pool = fake_pool

        await database.close_db()
        await database.close_db()

        fake_pool.close.assert_awaited_once()
        assert database._pool is None


class TestErrors:

    def test_status_codes(self) -> None:
        assert AnalysisValidationError("bad").status_code == 400
        assert BenchmarkNotFoundError("bm_1").status_code == 404
        assert BenchmarkNotReadyError("bm_1", BenchmarkStatus.FAILED).status_code == 409

    def test_not_ready_message_names_status(self) -> None:
        error = BenchmarkNotReadyError("bm_1", BenchmarkStatus.PROCESSING)

        assert "PROCESSING" in error.message
        assert isinstance(error, ValueError)
