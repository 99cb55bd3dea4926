# src/repeated_assert/clock.py
"""Clock abstraction for the attempt loop.

The driver sleeps a fixed delay between attempts. Sleeping goes through a
Clock so tests can count and measure delays without blocking.

Production code uses SystemClock (the default).
Tests inject MockClock to record sleeps and advance time instantly.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    """Abstract clock used between attempts.

    Implementations:
    - SystemClock: Blocks on time.sleep() / asyncio.sleep() (production)
    - MockClock: Advances a virtual time and records every sleep (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for the given number of seconds."""
        ...

    async def async_sleep(self, seconds: float) -> None:
        """Suspend the calling task for the given number of seconds."""
        ...


class SystemClock:
    """Production clock backed by the time and asyncio modules."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    async def async_sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class MockClock:
    """Controllable clock for deterministic testing.

    Sleeping advances the virtual time immediately and is recorded, so a test
    can assert how often and how long the driver waited.

    Example:
        clock = MockClock()
        retry(5, 0.5, predicate, clock=clock)

        assert clock.sleeps == [0.5, 0.5]
        assert clock.monotonic() == 1.0
    """

    def __init__(self, start: float = 0.0) -> None:
        """Initialize mock clock at a given time.

        Args:
            start: Initial monotonic time value (default 0.0).
        """
        self._current = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    async def async_sleep(self, seconds: float) -> None:
        self.sleep(seconds)
        # Still yield to the loop so other tasks observe a suspension point
        await asyncio.sleep(0)


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
