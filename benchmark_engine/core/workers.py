"""
Bounded worker pool for fan-out analysis work.

Statistics per group, top performers per outcome and correlations per
outcome are independent computations. parallel_map runs them on a
ThreadPoolExecutor bounded by the configured worker count and returns the
partial results in input order, so merged output does not depend on
completion order.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def resolve_worker_count(max_workers: Optional[int], task_count: int) -> int:
    """Clamp the configured worker bound to [1, task_count]."""
    bound = max_workers or os.cpu_count() or 1
    return max(1, min(bound, task_count))


def parallel_map(
    fn: Callable[[T], R],
    items: Sequence[T],
    max_workers: Optional[int] = None,
) -> List[R]:
    """
    Apply fn to every item on a bounded thread pool.

    Runs inline when there is at most one item or one worker. The first
    exception raised by a task propagates to the caller after the pool
    shuts down.

    Args:
        fn: Pure function applied to each item.
        items: Work items.
        max_workers: Pool bound; None means the CPU count.

    Returns:
        List of results aligned with items.
    """
    if not items:
        return []

    workers = resolve_worker_count(max_workers, len(items))
    if workers == 1:
        return [fn(item) for item in items]

    results: List[Optional[R]] = [None] * len(items)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_index = {
            executor.submit(fn, item): index
            for index, item in enumerate(items)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.error(f"Worker task {index} failed: {e}")
                for pending in future_to_index:
                    pending.cancel()
                raise

    logger.debug(f"parallel_map completed {len(items)} tasks on {workers} workers")
    return results  # type: ignore[return-value]
