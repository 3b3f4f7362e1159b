"""Serializes outbound calls to one downstream API at a minimum interval."""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]


class RateLimitedDispatcher:
    """FIFO queue drained by a single task, one dispatch at a time.

    Tasks start at least ``min_interval`` seconds apart and each caller gets
    the outcome of its own task. Use one instance per downstream API.
    """

    def __init__(
        self,
        name: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.name = name
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: Deque[Tuple[TaskFactory, "asyncio.Future[Any]"]] = deque()
        self._drain_task: Optional["asyncio.Task[None]"] = None
        self._last_dispatch: Optional[float] = None
        self._in_flight: Optional["asyncio.Future[Any]"] = None
        self.dispatched: int = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def enqueue(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue ``task`` and wait for its result (or its exception)."""
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[T]" = loop.create_future()
        self._queue.append((task, future))

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())

        return await future

    async def _drain(self) -> None:
        while self._queue:
            if self._last_dispatch is not None:
                wait = self._last_dispatch + self.min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)

            task, future = self._queue.popleft()
            if future.done():
                # caller went away while queued
                continue

            self._last_dispatch = self._clock()
            self.dispatched += 1
            self._in_flight = future
            try:
                result = await task()
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._in_flight = None

    async def close(self) -> None:
        """Stop draining and fail anything still waiting in the queue."""
        in_flight = self._in_flight
        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass

        if in_flight is not None and not in_flight.done():
            in_flight.set_exception(
                RuntimeError(f"Dispatcher {self.name} closed during dispatch")
            )
        while self._queue:
            _, future = self._queue.popleft()
            if not future.done():
                future.set_exception(
                    RuntimeError(f"Dispatcher {self.name} closed before dispatch")
                )
        logger.debug("Dispatcher %s closed", self.name)
