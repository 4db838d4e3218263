"""Single-flight FIFO rate limiter for outbound provider calls."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from clustergeo._constants import DEFAULT_MIN_INTERVAL
from clustergeo.exceptions import ClusterGeoError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _QueuedTask:
    task: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]


class RateLimiter:
    """Run submitted coroutines one at a time, spaced by *min_interval*.

    The gap between the *start* of two consecutive tasks is never shorter
    than ``min_interval`` seconds. Tasks start in submission order and
    each one is awaited to completion before the next is considered.

    :meth:`schedule` returns a future for the task's result. Cancelling
    that future before the task is dispatched removes the task from the
    queue without using up an interval slot. Once dispatched, a task runs
    to completion even if its future is cancelled.

    Usage::

        limiter = RateLimiter(min_interval=1.1)
        facets = await limiter.schedule(lambda: lookup(point))
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._queue: deque[_QueuedTask] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._last_dispatch: float | None = None
        self._closed = False

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def pending(self) -> int:
        """Number of queued tasks that are still wanted."""
        return sum(1 for queued in self._queue if not queued.future.cancelled())

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def schedule(self, task: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Queue *task* and return a future resolving to its result.

        Must be called from a running event loop.
        """
        if self._closed:
            raise ClusterGeoError("RateLimiter is closed")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._queue.append(_QueuedTask(task=task, future=future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run(), name="clustergeo-rate-limiter")
        return future

    async def _run(self) -> None:
        while self._queue:
            head = self._queue[0]
            if head.future.cancelled():
                self._queue.popleft()
                continue

            if self._last_dispatch is not None:
                remaining = self._min_interval - (self._clock() - self._last_dispatch)
                if remaining > 0:
                    await self._sleep(remaining)
                    # The head may have been withdrawn while we slept.
                    continue

            self._queue.popleft()
            self._last_dispatch = self._clock()
            try:
                result = await head.task()
            except asyncio.CancelledError:
                head.future.cancel()
                raise
            except Exception as exc:  # noqa: BLE001 - delivered to the caller
                _logger.debug("Rate-limited task failed: %r", exc)
                if not head.future.done():
                    head.future.set_exception(exc)
            else:
                if not head.future.done():
                    head.future.set_result(result)

    async def aclose(self) -> None:
        """Stop the worker and cancel every queued task."""
        self._closed = True
        worker = self._worker
        self._worker = None
        while self._queue:
            self._queue.popleft().future.cancel()
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
