"""Rate-limited FIFO dispatch queue.

This module provides the admission gate in front of the network call.
Every outbound wire request of one client goes through a single
DispatchQueue, so unrelated callers (direct calls, pagination sessions)
are rate limited together.

Features:
- Strict FIFO order (admission order = execution order)
- At most one call in flight per queue
- Minimum spacing between dispatch start times
- Failure isolation (a failed call rejects only its own caller)
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimitPolicy:
    """Outbound rate limit expressed in calls per minute."""

    calls_per_minute: float

    def __post_init__(self) -> None:
        if not self.calls_per_minute > 0:
            raise ValueError(f"calls_per_minute must be positive, got {self.calls_per_minute}")

    @property
    def min_spacing(self) -> float:
        """Minimum seconds between two dispatch start times (at least 1ms)."""
        return max(1, math.floor(60_000 / self.calls_per_minute)) / 1000


@dataclass
class QueuedCall:
    """A call waiting for its dispatch slot.

    The future doubles as resolver and rejecter for the submitting caller.
    """

    call: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]
    submitted_at: float = field(default_factory=time.monotonic)


class DispatchQueue:
    """FIFO queue that spaces outbound calls by the policy's minimum spacing.

    Usage:
        queue = DispatchQueue(RateLimitPolicy(calls_per_minute=100))

        response = await queue.submit(lambda: transport.handle_async_request(request))

    A single drain loop runs while the queue is non-empty; the ``running``
    flag guarantees two drain loops never overlap. Each drain step waits
    out the remaining spacing, pops the head call, dispatches it and, once
    it settles, schedules the next step as a fresh task.
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the dispatch queue.

        Args:
            policy: Rate limit policy (immutable for the queue's lifetime)
            clock: Monotonic clock in seconds
            sleep: Coroutine used to wait out the spacing
        """
        self._policy = policy
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[QueuedCall] = deque()
        self._running = False
        self._last_dispatch_time: float | None = None
        self._drain_tasks: set[asyncio.Task[None]] = set()  # Prevent task GC

        # Statistics
        self._total_submitted = 0
        self._total_completed = 0
        self._total_failed = 0

    @property
    def policy(self) -> RateLimitPolicy:
        """The queue's rate limit policy."""
        return self._policy

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------
    async def submit(self, call: Callable[[], Awaitable[T]]) -> T:
        """Queue a call and wait for its result.

        Never rejects on admission. The call factory is invoked once, when
        the call reaches the head of the queue and its slot has arrived.

        Args:
            call: Factory creating the awaitable to dispatch

        Returns:
            Result of the call

        Raises:
            Exception: Whatever the call itself raised
        """
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.append(QueuedCall(call=call, future=future, submitted_at=self._clock()))
        self._total_submitted += 1

        logger.debug("Queued call (queue_size=%d, running=%s)", len(self._queue), self._running)

        if not self._running:
            self._running = True
            self._schedule_drain()

        return await future

    # -------------------------------------------------------------------------
    # Drain Loop
    # -------------------------------------------------------------------------
    def _schedule_drain(self) -> None:
        task = asyncio.get_running_loop().create_task(self._drain_step())
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)

    def _remaining_wait(self) -> float:
        if self._last_dispatch_time is None:
            return 0.0
        elapsed = self._clock() - self._last_dispatch_time
        return max(0.0, self._policy.min_spacing - elapsed)

    async def _drain_step(self) -> None:
        """Dispatch the head call, then hand over to the next step."""
        if not self._queue:
            self._running = False
            return

        wait = self._remaining_wait()
        if wait > 0:
            await self._sleep(wait)

        item = self._queue.popleft()
        self._last_dispatch_time = self._clock()

        try:
            result = await item.call()
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            self._running = False
            raise
        except Exception as e:
            self._total_failed += 1
            logger.debug("Dispatched call failed: %s", e)
            if not item.future.done():
                item.future.set_exception(e)
        else:
            self._total_completed += 1
            if not item.future.done():
                item.future.set_result(result)

        if self._queue:
            self._schedule_drain()
        else:
            self._running = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def aclose(self) -> None:
        """Cancel the drain loop and every call still waiting in the queue."""
        for task in list(self._drain_tasks):
            task.cancel()
        if self._drain_tasks:
            await asyncio.gather(*self._drain_tasks, return_exceptions=True)

        while self._queue:
            item = self._queue.popleft()
            if not item.future.done():
                item.future.cancel()
        self._running = False

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        """True while a drain loop is active."""
        return self._running

    @property
    def queue_size(self) -> int:
        """Number of calls waiting for dispatch."""
        return len(self._queue)

    @property
    def is_idle(self) -> bool:
        """True if nothing is queued or in flight."""
        return not self._queue and not self._running

    @property
    def last_dispatch_time(self) -> float | None:
        """Clock reading taken immediately before the latest dispatch."""
        return self._last_dispatch_time

    def get_stats(self) -> dict[str, int | float | bool]:
        """Get queue statistics.

        Returns:
            Dict with queue_size, is_running, min_spacing and totals
        """
        return {
            "queue_size": len(self._queue),
            "is_running": self._running,
            "min_spacing": self._policy.min_spacing,
            "total_submitted": self._total_submitted,
            "total_completed": self._total_completed,
            "total_failed": self._total_failed,
        }
