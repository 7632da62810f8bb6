"""
Parameterized SQL query module for benchmark records and derived results.

Query builders return asyncpg-style SQL (`$1`, `$2`, ...) and, where the
statement depends on caller filters, the positional arguments alongside it.

Tables:
    benchmark: Benchmark metadata (id, name, type, scope, status, total_rows)
    benchmark_data_point: One row per imported assessment record
    benchmark_top_performer: Published top-performer results (jsonb payload)
    benchmark_correlation: Published competency/outcome correlations

Record columns are the snake_case form of the AssessmentRecord attribute
names (`qualityOfLife` -> `quality_of_life`); upper-case metric keys are
stored lower-cased (`EMP` -> `emp`). SELECTs alias each column back to the
attribute name so rows validate straight into AssessmentRecord.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from benchmark_engine.models.catalog import (
    COMPETENCY_KEYS,
    EQ_TOTAL_KEY,
    OUTCOME_KEYS,
    PILLAR_KEYS,
    RELIABILITY_KEY,
    TALENT_KEYS,
)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

RECORD_ATTRIBUTES: Tuple[str, ...] = (
    "id", "sourceId", "sourceDate", "benchmarkId",
    "country", "region", "sector", "jobFunction", "jobRole",
    "ageRange", "gender", "education", "year",
    EQ_TOTAL_KEY,
) + PILLAR_KEYS + COMPETENCY_KEYS + OUTCOME_KEYS + TALENT_KEYS + (
    "brainStyle", RELIABILITY_KEY,
)

# Attributes a record query may be filtered on (exact match)
FILTERABLE_ATTRIBUTES: Tuple[str, ...] = (
    "country", "region", "sector", "jobFunction", "jobRole",
    "ageRange", "gender", "education", "year", "brainStyle",
)


def column_name(attribute: str) -> str:
    """
    Map an AssessmentRecord attribute to its table column.

    Example:
        >>> column_name("qualityOfLife")
        'quality_of_life'
        >>> column_name("EMP")
        'emp'
    """
    if attribute.isupper():
        return attribute.lower()
    return _CAMEL_BOUNDARY.sub("_", attribute).lower()


def _record_select_list() -> str:
    return ",\n        ".join(
        f'{column_name(attr)} AS "{attr}"' for attr in RECORD_ATTRIBUTES
    )


# =============================================================================
# Benchmark metadata and records
# =============================================================================

def get_benchmark_meta_query() -> str:
    """SQL fetching one benchmark's metadata by id ($1)."""
    return """
    SELECT
        id,
        name,
        type,
        scope,
        status,
        total_rows AS "totalRows",
        created_at AS "createdAt"
    FROM benchmark
    WHERE id = $1
    """


def get_benchmark_records_query(
    benchmark_id: str,
    filters: Optional[Dict[str, Any]] = None,
) -> Tuple[str, List[Any]]:
    """
    Generate SQL fetching a benchmark's assessment records.

    Args:
        benchmark_id: Owning benchmark.
        filters: Optional exact-match filters keyed by record attribute
            (see FILTERABLE_ATTRIBUTES). None values are ignored.

    Returns:
        Tuple of (query, positional args).

    Raises:
        ValueError: If a filter names an attribute that cannot be filtered on.
    """
    where_conditions = ["benchmark_id = $1"]
    args: List[Any] = [benchmark_id]

    for attribute, value in sorted((filters or {}).items()):
        if value is None:
            continue
        if attribute not in FILTERABLE_ATTRIBUTES:
            raise ValueError(f"Cannot filter benchmark records on '{attribute}'")
        args.append(value)
        where_conditions.append(f"{column_name(attribute)} = ${len(args)}")

    query = f"""
    SELECT
        {_record_select_list()}
    FROM benchmark_data_point
    WHERE {" AND ".join(where_conditions)}
    ORDER BY id
    """
    return query, args


# =============================================================================
# Top performers
# =============================================================================

DELETE_TOP_PERFORMERS_QUERY = """
    DELETE FROM benchmark_top_performer
    WHERE benchmark_id = $1
"""

INSERT_TOP_PERFORMER_QUERY = """
    INSERT INTO benchmark_top_performer (
        benchmark_id,
        outcome_key,
        status,
        sample_size,
        payload,
        generated_at
    ) VALUES ($1, $2, $3, $4, $5::jsonb, $6)
"""

DELETE_TOP_PERFORMER_FOR_OUTCOME_QUERY = """
    DELETE FROM benchmark_top_performer
    WHERE benchmark_id = $1 AND outcome_key = $2
"""

SELECT_TOP_PERFORMER_QUERY = """
    SELECT payload
    FROM benchmark_top_performer
    WHERE benchmark_id = $1 AND outcome_key = $2
"""

SELECT_TOP_PERFORMERS_QUERY = """
    SELECT payload
    FROM benchmark_top_performer
    WHERE benchmark_id = $1
    ORDER BY outcome_key
"""


# =============================================================================
# Correlations
# =============================================================================

DELETE_CORRELATIONS_QUERY = """
    DELETE FROM benchmark_correlation
    WHERE benchmark_id = $1
"""

INSERT_CORRELATION_QUERY = """
    INSERT INTO benchmark_correlation (
        benchmark_id,
        competency_key,
        outcome_key,
        correlation,
        strength,
        direction,
        n,
        p_value,
        year
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
"""

SELECT_CORRELATIONS_QUERY = """
    SELECT
        benchmark_id AS "benchmarkId",
        competency_key AS "competencyKey",
        outcome_key AS "outcomeKey",
        correlation,
        strength,
        direction,
        n,
        p_value AS "pValue",
        year
    FROM benchmark_correlation
    WHERE benchmark_id = $1
    ORDER BY outcome_key, ABS(correlation) DESC, competency_key, year NULLS FIRST
"""
