# src/sync/retry.py — v1
"""Retry policy with exponential backoff, and the delay queue that replays retries.

Retries never sleep inside a worker. A failed item is pushed onto a
``DelayQueue``: one scheduler task keeps a heap of due times and hands each
item back to the work queue when its delay expires.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """When to give up and how long to wait before the next try."""

    max_tries: int = 10
    base_delay_s: float = 0.1
    backoff_factor: float = 2.0
    jitter: bool = False
    max_pending: int = 10_000

    def exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_tries

    def delay_for(self, attempts: int) -> float:
        """Delay after the ``attempts``-th failure: base * factor ** attempts."""
        delay = self.base_delay_s * (self.backoff_factor ** attempts)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return delay


class DelayQueue(Generic[T]):
    """Single-task timer queue feeding items back to ``sink`` once due.

    ``schedule`` must be called from the event loop thread.
    """

    def __init__(
        self,
        sink: Callable[[T], Awaitable[None]],
        max_pending: int | None = None,
    ) -> None:
        self._sink = sink
        self._max_pending = max_pending
        self._heap: list[tuple[float, int, T]] = []
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._pump(), name="bucketsync-delay-queue",
            )

    def schedule(self, item: T, delay: float) -> bool:
        """Queue ``item`` for release after ``delay`` seconds.

        Returns False, without queueing, when ``max_pending`` items are waiting.
        """
        if self._max_pending is not None and len(self._heap) >= self._max_pending:
            return False
        due = asyncio.get_running_loop().time() + max(delay, 0.0)
        heapq.heappush(self._heap, (due, next(self._seq), item))
        self._wakeup.set()
        return True

    def drain(self) -> list[T]:
        """Remove and return every item still waiting."""
        items = [entry[2] for entry in sorted(self._heap)]
        self._heap.clear()
        self._wakeup.set()
        return items

    async def close(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def __len__(self) -> int:
        return len(self._heap)

    async def _pump(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            if not self._heap:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            due = self._heap[0][0]
            timeout = due - loop.time()
            if timeout > 0:
                self._wakeup.clear()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout)
                except asyncio.TimeoutError:
                    pass
                continue

            _, _, item = heapq.heappop(self._heap)
            await self._sink(item)
