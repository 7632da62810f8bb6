"""
SQL Query Module for the benchmark analysis engine.

Provides parameterized asyncpg queries for benchmark metadata, assessment
records and the published derived-result tables. Follows the Repository
Pattern: services.repository executes these, engine code never sees SQL.

Example usage:
    from benchmark_engine.sql import get_benchmark_records_query

    query, args = get_benchmark_records_query("bm_1", {"country": "Chile"})
    rows = await conn.fetch(query, *args)
"""

from benchmark_engine.sql.benchmark_queries import (
    RECORD_ATTRIBUTES,
    FILTERABLE_ATTRIBUTES,
    column_name,
    get_benchmark_meta_query,
    get_benchmark_records_query,
    DELETE_TOP_PERFORMERS_QUERY,
    DELETE_TOP_PERFORMER_FOR_OUTCOME_QUERY,
    INSERT_TOP_PERFORMER_QUERY,
    SELECT_TOP_PERFORMER_QUERY,
    SELECT_TOP_PERFORMERS_QUERY,
    DELETE_CORRELATIONS_QUERY,
    INSERT_CORRELATION_QUERY,
    SELECT_CORRELATIONS_QUERY,
)


__all__ = [
    "RECORD_ATTRIBUTES",
    "FILTERABLE_ATTRIBUTES",
    "column_name",
    "get_benchmark_meta_query",
    "get_benchmark_records_query",
    "DELETE_TOP_PERFORMERS_QUERY",
    "DELETE_TOP_PERFORMER_FOR_OUTCOME_QUERY",
    "INSERT_TOP_PERFORMER_QUERY",
    "SELECT_TOP_PERFORMER_QUERY",
    "SELECT_TOP_PERFORMERS_QUERY",
    "DELETE_CORRELATIONS_QUERY",
    "INSERT_CORRELATION_QUERY",
    "SELECT_CORRELATIONS_QUERY",
]
