"""
Per-group descriptive statistics for a categorical dimension.

Records are partitioned by the exact value of one categorical attribute
(country, region, sector, jobFunction, jobRole, ageRange, gender, education,
year or brainStyle). Values are not trimmed or case-folded, so "Peru" and
"Peru " are different groups, as is the empty string.

Records with no value land in a separate partition named "Unknown" and
flagged `isUnknown`. It never merges with a real value, not even a literal
"Unknown", so group counts always sum to the input size and labelled records
never leak into the missing-value statistics.

Each group's statistics are the statistics module applied to that partition
alone. Groups are returned by count descending, then group name ascending;
on a name tie the labelled group comes before the missing-value group.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from benchmark_engine.core.config import AnalysisPolicy
from benchmark_engine.core.errors import AnalysisValidationError
from benchmark_engine.core.workers import parallel_map
from benchmark_engine.models.enums import GroupByField
from benchmark_engine.models.schemas import AssessmentRecord, GroupedStat
from benchmark_engine.services.statistics import (
    extract_metric_values,
    stats_from_values,
    validate_metric_keys,
)

logger = logging.getLogger(__name__)


UNKNOWN_GROUP = "Unknown"

# (group name, is the missing-value partition, member records)
Partition = Tuple[str, bool, List[AssessmentRecord]]


def resolve_group_by(group_by: str) -> GroupByField:
    """
    Validate a group-by key.

    Args:
        group_by: Attribute name as received from the caller.

    Returns:
        The matching GroupByField.

    Raises:
        AnalysisValidationError: If group_by is not a categorical attribute.

    Example:
        >>> resolve_group_by("jobRole")
        <GroupByField.JOB_ROLE: 'jobRole'>
    """
    try:
        return GroupByField(group_by)
    except ValueError:
        allowed = ", ".join(field.value for field in GroupByField)
        raise AnalysisValidationError(
            f"Cannot group by '{group_by}'; expected one of: {allowed}",
            field="groupBy",
        ) from None


def _group_key(value: object) -> Tuple[bool, str]:
    """
    Partition key of one attribute value.

    Args:
        value: The raw attribute value of a record (str, int or None).

    Returns:
        (missing, label). Missing values map to (True, "Unknown"); any present
        value maps to (False, str(value)) untouched, so a literal "Unknown"
        gets (False, "Unknown") and stays apart from the missing partition.

    Example:
        >>> _group_key(None), _group_key("Unknown"), _group_key(2024)
        ((True, 'Unknown'), (False, 'Unknown'), (False, '2024'))
    """
    if value is None:
        return True, UNKNOWN_GROUP
    return False, str(value)


def partition_records(
    records: Sequence[AssessmentRecord],
    group_by: GroupByField,
) -> List[Partition]:
    """
    Split records into partitions by exact attribute value.

    Args:
        records: Assessment records of one benchmark.
        group_by: Attribute to partition on.

    Returns:
        (group name, is missing-value partition, records) tuples ordered by
        size descending, then name, then labelled before missing.
    """
    if not records:
        return []

    keys = [_group_key(getattr(r, group_by.value)) for r in records]
    frame = pd.DataFrame({
        "position": range(len(records)),
        "missing": [missing for missing, _ in keys],
        "group": [label for _, label in keys],
    })

    partitions = [
        (name, bool(missing), [records[i] for i in positions])
        for (missing, name), positions in frame.groupby(["missing", "group"], sort=False)["position"]
    ]
    partitions.sort(key=lambda item: (-len(item[2]), item[0], item[1]))
    return partitions


def compute_grouped_statistics(
    records: Sequence[AssessmentRecord],
    group_by: str,
    metric_keys: Optional[Sequence[str]] = None,
    policy: Optional[AnalysisPolicy] = None,
) -> List[GroupedStat]:
    """
    Compute per-group statistics for every requested metric.

    Args:
        records: Assessment records of one benchmark.
        group_by: Categorical attribute name (see GroupByField).
        metric_keys: Optional metric subset; defaults to the full catalogue.
        policy: Analysis policy (only max_workers is used here).

    Returns:
        One GroupedStat per distinct value, plus one with isUnknown=True when
        some records have no value. Empty input gives an empty list.

    Raises:
        AnalysisValidationError: For an unknown group-by key or metric.
    """
    policy = policy or AnalysisPolicy()
    field = resolve_group_by(group_by)
    keys = validate_metric_keys(metric_keys)

    partitions = partition_records(records, field)

    def summarize(partition: Partition) -> GroupedStat:
        name, missing, members = partition
        return GroupedStat(
            groupName=name,
            isUnknown=missing,
            count=len(members),
            metrics={
                key: stats_from_values(extract_metric_values(members, key), key)
                for key in keys
            },
        )

    groups = parallel_map(summarize, partitions, max_workers=policy.max_workers)

    logger.info(
        f"Grouped {len(records)} records by {field.value} into {len(groups)} groups"
    )
    return groups
