"""Fan-out over many items where each failure gets its own fallback."""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")


async def gather_with_fallback(
    items: Iterable[ItemT],
    operation: Callable[[ItemT], Awaitable[ResultT]],
    fallback: Callable[[ItemT, Exception], ResultT],
    concurrency: Optional[int] = None,
) -> List[ResultT]:
    """Run ``operation`` over every item concurrently.

    Results come back in input order. An item whose operation raises gets
    ``fallback(item, exc)`` instead; siblings keep running and this never
    raises for an item failure.
    """
    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def run(item: ItemT) -> ResultT:
        try:
            if semaphore is None:
                return await operation(item)
            async with semaphore:
                return await operation(item)
        except Exception as exc:
            logger.warning("Falling back for %r: %s", item, exc)
            return fallback(item, exc)

    return list(await asyncio.gather(*(run(item) for item in items)))
