import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run fn over items with at most `limit` calls in flight, preserving order.

    Exceptions propagate like asyncio.gather; callers wanting per-item
    degradation wrap fn themselves.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    return list(await asyncio.gather(*(_run(item) for item in items)))


def chunked(items: list[T], size: int) -> list[list[T]]:
    return [items[i:i + size] for i in range(0, len(items), max(1, size))]
