"""
Benchmark Analysis API application.

Run locally with:
    uvicorn benchmark_engine.main:app --reload

The database pool is opened in the lifespan and closed on shutdown. If the
database is down at startup the service still boots; /health and / answer,
and analysis endpoints open the pool on first use.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from benchmark_engine import __version__
from benchmark_engine.api import api_router
from benchmark_engine.core.config import get_settings
from benchmark_engine.core.database import close_db, init_db

API_TITLE = "Benchmark Analysis API"

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the benchmark database pool for the lifetime of the app."""
    logger.info(f"{API_TITLE} {__version__} starting")
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Benchmark database unavailable at startup: {e}")

    try:
        yield
    finally:
        try:
            await close_db()
        except Exception as e:
            logger.error(f"Failed to close benchmark database pool: {e}")
        logger.info(f"{API_TITLE} stopped")


app = FastAPI(
    title=API_TITLE,
    version=__version__,
    description=(
        "Statistics, top performers, correlations, comparisons and data "
        "quality for SEI assessment benchmarks."
    ),
    lifespan=lifespan,
)

# Admin UI dev servers
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health", tags=["service"])
async def health_check() -> dict:
    """Liveness check; does not touch the database."""
    return {"status": "healthy"}


@app.get("/", tags=["service"])
async def root() -> dict:
    """Service name, version and documentation links."""
    return {
        "name": API_TITLE,
        "version": __version__,
        "docs": app.docs_url,
        "openapi": app.openapi_url,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("benchmark_engine.main:app", host="0.0.0.0", port=8000, reload=True)
