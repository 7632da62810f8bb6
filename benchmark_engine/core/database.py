"""
asyncpg pool shared by the API process and the recalculation job.

Benchmark metadata, imported assessment rows and the published top-performer
and correlation tables all live in one PostgreSQL database. The engine never
touches the pool directly; BenchmarkRepository is handed the pool by the
dependency layer or by the job.

Lifecycle:
    open_pool / init_db  -> created lazily or from the FastAPI lifespan
    get_db_pool          -> returns the open pool, opening it on first use
    close_db             -> releases all connections (no-op when never opened)

Pool sizing and the per-statement timeout come from Settings
(DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_COMMAND_TIMEOUT).
"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from benchmark_engine.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


_pool: Optional[Pool] = None


async def open_pool(settings: Settings) -> Pool:
    """
    Create a new asyncpg pool from settings.

    Raises:
        asyncpg.PostgresError: If the server rejects the connection.
        OSError: If the database host cannot be reached.
    """
    pool = await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )
    logger.info(
        f"Opened benchmark database pool "
        f"(min={settings.db_pool_min_size}, max={settings.db_pool_max_size})"
    )
    return pool


async def init_db() -> Pool:
    """Open the shared pool unless it is already open, and return it."""
    global _pool

    if _pool is None:
        _pool = await open_pool(get_settings())
    return _pool


async def get_db_pool() -> Pool:
    """Return the shared pool, opening it on first use."""
    return _pool if _pool is not None else await init_db()


async def close_db() -> None:
    """Close the shared pool; safe to call when it was never opened."""
    global _pool

    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("Closed benchmark database pool")
