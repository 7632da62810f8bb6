"""
Benchmark Analysis Engine Package.

FastAPI service that turns the assessment records of a benchmark into
descriptive statistics, top-performer cohorts, correlations, N-way
comparisons and data-quality reports.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, errors, worker pool, database, dependencies
    - models: Metric catalogue, enums and Pydantic schemas
    - services: Analysis engine and benchmark repository
    - jobs: Benchmark recalculation job
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
