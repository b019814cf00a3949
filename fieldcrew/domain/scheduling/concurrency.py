"""Bounded fan-out of independent per-worker lookups"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from ...config import SCHEDULING_MAX_PARALLELISM

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BranchResult(Generic[R]):
    key: Any
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(
    items: Iterable[T],
    fn: Callable[[T], R],
    key: Callable[[T], Any],
    max_workers: int = SCHEDULING_MAX_PARALLELISM,
) -> list[BranchResult[R]]:
    """
    Run `fn` over `items` on a bounded thread pool and join.

    Each branch's exception is captured in its own BranchResult so one
    failing lookup never aborts the others. Results come back in input
    order regardless of completion order.
    """
    items = list(items)
    if not items:
        return []

    results: list[BranchResult[R]] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as executor:
        futures = [(key(item), executor.submit(fn, item)) for item in items]

        for branch_key, future in futures:
            try:
                results.append(BranchResult(key=branch_key, value=future.result()))
            except Exception as e:
                logger.error(f"❌ Lookup failed for {branch_key}: {e}")
                results.append(BranchResult(key=branch_key, error=e))

    return results
