"""Bounded worker pool for asynchronous per-item operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    concurrency: int,
    operation: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run ``operation`` once per item with at most ``concurrency`` calls in flight.

    Workers pull from one shared FIFO queue. Results come back in completion
    order. The first failure is raised to the caller; workers still running
    are left to finish on their own, take no new items, and their results are
    discarded.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1.")

    queue: asyncio.Queue[T] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    results: List[R] = []
    failed = asyncio.Event()

    async def worker() -> None:
        while not failed.is_set():
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                result = await operation(item)
            except BaseException:
                failed.set()
                raise
            if not failed.is_set():
                results.append(result)

    worker_count = max(1, min(concurrency, len(items)))
    tasks = [asyncio.ensure_future(worker()) for _ in range(worker_count)]
    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            if not task.done():
                task.add_done_callback(_discard_result)
    return results


def _discard_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned worker finished with %r", exc)
