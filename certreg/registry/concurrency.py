"""Bounded fan-out for batch reads."""

import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar, Union

from certreg.core.config import LEDGER_READ_CONCURRENCY

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int = LEDGER_READ_CONCURRENCY,
) -> List[Union[R, Exception]]:
    """Run ``fn`` over ``items`` with at most ``limit`` calls in flight.

    Results keep input order. A failing item yields its exception in place
    of a result so the caller can isolate it; cancellation is not captured.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    results = await asyncio.gather(*(run(i) for i in items), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    return results
