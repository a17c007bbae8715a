"""Unit tests for DispatchQueue.

These tests verify FIFO ordering, dispatch spacing, single-flight
dispatch and failure isolation.
"""

import asyncio
import time

import pytest

from warera_client.transport.queue import DispatchQueue, RateLimitPolicy


def make_queue(fake_clock, calls_per_minute: float = 100) -> DispatchQueue:
    """Helper to create a queue on the fake clock."""
    return DispatchQueue(
        RateLimitPolicy(calls_per_minute=calls_per_minute),
        clock=fake_clock,
        sleep=fake_clock.sleep,
    )


class TestRateLimitPolicy:
    """Tests for spacing derivation."""

    @pytest.mark.parametrize(
        ("calls_per_minute", "spacing"),
        [(100, 0.6), (200, 0.3), (60_000, 0.001), (7, 8.571)],
    )
    def test_min_spacing(self, calls_per_minute: float, spacing: float) -> None:
        """Spacing is 60000ms / rate, floored to whole milliseconds."""
        assert RateLimitPolicy(calls_per_minute).min_spacing == pytest.approx(spacing)

    def test_spacing_floor_is_one_millisecond(self) -> None:
        assert RateLimitPolicy(1_000_000).min_spacing == 0.001

    @pytest.mark.parametrize("calls_per_minute", [0, -5])
    def test_non_positive_rate_rejected(self, calls_per_minute: float) -> None:
        with pytest.raises(ValueError):
            RateLimitPolicy(calls_per_minute)


class TestSubmit:
    """Tests for submission and results."""

    async def test_returns_result(self, fake_clock) -> None:
        queue = make_queue(fake_clock)

        async def call() -> str:
            return "ok"

        assert await queue.submit(call) == "ok"

    async def test_first_call_is_not_delayed(self, fake_clock) -> None:
        """An idle queue dispatches immediately."""
        queue = make_queue(fake_clock)

        async def call() -> None:
            return None

        await queue.submit(call)

        assert fake_clock.sleeps == []
        assert queue.last_dispatch_time == fake_clock.now

    async def test_last_dispatch_time_starts_unset(self, fake_clock) -> None:
        assert make_queue(fake_clock).last_dispatch_time is None

    async def test_drains_in_submission_order(self, fake_clock) -> None:
        """Calls execute strictly in FIFO order."""
        queue = make_queue(fake_clock)
        order: list[int] = []

        def factory(i: int):
            async def call() -> int:
                order.append(i)
                return i

            return call

        results = await asyncio.gather(*(queue.submit(factory(i)) for i in range(6)))

        assert order == [0, 1, 2, 3, 4, 5]
        assert results == [0, 1, 2, 3, 4, 5]

    async def test_queue_is_idle_after_drain(self, fake_clock) -> None:
        queue = make_queue(fake_clock)

        async def call() -> None:
            return None

        await asyncio.gather(*(queue.submit(call) for _ in range(3)))

        assert queue.is_idle
        assert queue.is_running is False
        assert queue.queue_size == 0


class TestSpacing:
    """Tests for the rate ceiling."""

    async def test_consecutive_dispatches_are_spaced(self, fake_clock) -> None:
        """Start times of consecutive dispatches are >= min_spacing apart."""
        queue = make_queue(fake_clock, calls_per_minute=100)
        starts: list[float] = []

        async def call() -> None:
            starts.append(fake_clock())

        await asyncio.gather(*(queue.submit(call) for _ in range(5)))

        gaps = [b - a for a, b in zip(starts, starts[1:], strict=False)]
        assert len(gaps) == 4
        assert all(gap >= 0.6 - 1e-9 for gap in gaps)

    async def test_slow_call_counts_toward_spacing(self, fake_clock) -> None:
        """Time spent in the previous call reduces the next wait."""
        queue = make_queue(fake_clock, calls_per_minute=100)

        async def slow() -> None:
            fake_clock.advance(0.4)

        await asyncio.gather(queue.submit(slow), queue.submit(slow))

        assert fake_clock.sleeps == [pytest.approx(0.2)]

    async def test_no_wait_after_idle_period(self, fake_clock) -> None:
        queue = make_queue(fake_clock, calls_per_minute=100)

        async def call() -> None:
            return None

        await queue.submit(call)
        fake_clock.advance(5)
        await queue.submit(call)

        assert fake_clock.sleeps == []

    async def test_concurrent_submitters_share_the_ceiling(self, fake_clock) -> None:
        """Independent submitters interleave through one spacing."""
        queue = make_queue(fake_clock, calls_per_minute=200)
        starts: list[float] = []

        async def call() -> None:
            starts.append(fake_clock())

        async def submitter(n: int) -> None:
            for _ in range(n):
                await queue.submit(call)

        await asyncio.gather(submitter(3), submitter(3), submitter(2))

        assert len(starts) == 8
        assert all(b - a >= 0.3 - 1e-9 for a, b in zip(starts, starts[1:], strict=False))

    async def test_real_clock_spacing(self) -> None:
        """Measured gaps respect the spacing on the real event loop."""
        queue = DispatchQueue(RateLimitPolicy(calls_per_minute=1200))  # 50ms
        starts: list[float] = []

        async def call() -> None:
            starts.append(time.monotonic())

        await asyncio.gather(*(queue.submit(call) for _ in range(4)))

        gaps = [b - a for a, b in zip(starts, starts[1:], strict=False)]
        assert all(gap >= 0.05 - 0.01 for gap in gaps)


class TestSingleFlight:
    """At most one call is in flight per queue."""

    async def test_no_overlapping_calls(self, fake_clock) -> None:
        queue = make_queue(fake_clock, calls_per_minute=60_000)
        active = 0
        peak = 0

        async def call() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            for _ in range(3):
                await asyncio.sleep(0)
            active -= 1

        await asyncio.gather(*(queue.submit(call) for _ in range(5)))

        assert peak == 1


class TestFailureIsolation:
    """A failing call rejects only its own caller."""

    async def test_failure_does_not_stall_queue(self, fake_clock) -> None:
        queue = make_queue(fake_clock)

        def factory(i: int):
            async def call() -> int:
                if i == 1:
                    raise ConnectionError("boom")
                return i

            return call

        results = await asyncio.gather(
            *(queue.submit(factory(i)) for i in range(4)),
            return_exceptions=True,
        )

        assert results[0] == 0
        assert isinstance(results[1], ConnectionError)
        assert results[2:] == [2, 3]
        assert queue.is_idle

    async def test_error_propagates_unchanged(self, fake_clock) -> None:
        queue = make_queue(fake_clock)
        error = TimeoutError("stalled")

        async def call() -> None:
            raise error

        with pytest.raises(TimeoutError) as exc_info:
            await queue.submit(call)

        assert exc_info.value is error

    async def test_stats_count_failures(self, fake_clock) -> None:
        queue = make_queue(fake_clock)

        async def ok() -> None:
            return None

        async def bad() -> None:
            raise ValueError("bad")

        await asyncio.gather(queue.submit(ok), queue.submit(bad), return_exceptions=True)

        stats = queue.get_stats()
        assert stats["total_submitted"] == 2
        assert stats["total_completed"] == 1
        assert stats["total_failed"] == 1
        assert stats["min_spacing"] == 0.6


class TestClose:
    """Tests for aclose()."""

    async def test_aclose_cancels_waiting_calls(self, fake_clock) -> None:
        queue = make_queue(fake_clock)
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        tasks = [asyncio.create_task(queue.submit(blocked)) for _ in range(3)]
        for _ in range(5):
            await asyncio.sleep(0)

        await queue.aclose()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(result, asyncio.CancelledError) for result in results)
        assert queue.queue_size == 0
        assert queue.is_running is False
