"""Async helpers.

Usage:
    from hookguard.utils.async_helpers import batch_execute

    results = await batch_execute(tasks, max_concurrent=5)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")


async def batch_execute(
    tasks: list[Callable[[], Awaitable[T]]], max_concurrent: int | None = None
) -> list[T | BaseException]:
    """Execute multiple async tasks with an optional concurrency limit.

    Args:
        tasks: Zero-argument callables returning awaitables.
        max_concurrent: Maximum number of tasks running at once. ``None``
            runs everything at once.

    Returns:
        Results (or the exception each task raised) in original order.
    """
    if not tasks:
        return []

    if max_concurrent is None or max_concurrent >= len(tasks):
        return await asyncio.gather(
            *(task() for task in tasks), return_exceptions=True
        )

    semaphore = asyncio.Semaphore(max(1, max_concurrent))

    async def limited_task(task: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await task()

    return await asyncio.gather(
        *(limited_task(task) for task in tasks), return_exceptions=True
    )


__all__ = ["batch_execute"]
