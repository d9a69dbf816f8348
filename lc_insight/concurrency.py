"""
Bounded concurrent mapping.

A fixed number of workers pull the next unprocessed index from one shared
cursor until the input is exhausted, writing each result into a pre-sized
list at its input position. Output order therefore matches input order
regardless of completion order.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class TaskFailure:
    """Inline marker for an item whose handler raised."""
    index: int
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


async def map_concurrent(
    items: Sequence[Any],
    concurrency: int,
    fn: Callable[[Any, int], Awaitable[Any]],
    timeout: Optional[float] = None
) -> List[Any]:
    """
    Apply an async handler to every item with at most `concurrency` in flight.

    Args:
        items: Input items
        concurrency: Maximum concurrent handler calls (at least 1)
        fn: Async handler called as fn(item, index)
        timeout: Optional per-call timeout in seconds

    Returns:
        Results in input order; a failed call leaves a TaskFailure at its index
    """
    items = list(items)
    results: List[Any] = [None] * len(items)
    if not items:
        return results

    cursor = iter(range(len(items)))

    async def worker():
        for idx in cursor:
            try:
                call = fn(items[idx], idx)
                if timeout is not None:
                    results[idx] = await asyncio.wait_for(call, timeout)
                else:
                    results[idx] = await call
            except Exception as e:
                logger.debug(f"Task {idx} failed: {e!r}")
                results[idx] = TaskFailure(index=idx, error=e)

    worker_count = min(max(1, concurrency), len(items))
    await asyncio.gather(*(worker() for _ in range(worker_count)))
    return results
