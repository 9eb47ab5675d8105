"""
Clock capability for time-driven feed behavior.

Provides:
- ``LoopClock`` backed by wall-clock time and the running asyncio loop
- ``ManualClock`` with simulated time that only moves when advanced
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from typing import Callable


class TimerHandle(ABC):
    """Cancellation handle returned by ``Clock.after``."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the pending callback. Safe to call more than once."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Whether the callback was cancelled before it fired."""


class Clock(ABC):
    """Source of time and delayed callbacks.

    Times are epoch milliseconds; delays are seconds.
    """

    @abstractmethod
    def now(self) -> float:
        """Current time in epoch milliseconds."""

    @abstractmethod
    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once, ``delay`` seconds from now.

        Args:
            delay: Seconds to wait (negative values are treated as 0)
            callback: Zero-argument callable

        Returns:
            Handle that cancels the callback
        """


# =============================================================================
# Wall-clock implementation
# =============================================================================


class _LoopTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class LoopClock(Clock):
    """Clock using ``time.time()`` and ``loop.call_later``.

    Must be used from inside a running event loop.
    """

    def now(self) -> float:
        return time.time() * 1000.0

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return _LoopTimerHandle(loop.call_later(max(0.0, delay), callback))


# =============================================================================
# Simulated implementation
# =============================================================================


class _ManualTimerHandle(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        if not self.fired:
            self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualClock(Clock):
    """Simulated clock for tests.

    Time only moves through ``advance``/``tick``. Callbacks scheduled by
    other callbacks during an advance run too if they fall inside the
    advanced window.

    Usage:
        clock = ManualClock(start=1_700_000_000_000)
        clock.after(1.0, fire)
        clock.advance(1.0)  # fire() runs here
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: list[tuple[float, int, _ManualTimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def after(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualTimerHandle(self._now + max(0.0, delay) * 1000.0, callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled, not yet fired or cancelled, callbacks."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward, firing every callback that becomes due.

        Args:
            seconds: Seconds to advance

        Returns:
            Number of callbacks fired
        """
        target = self._now + seconds * 1000.0
        fired = 0

        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle.fired = True
            handle.callback()
            fired += 1

        self._now = target
        return fired

    def tick(self, count: int = 1, interval: float = 1.0) -> int:
        """Advance in ``count`` steps of ``interval`` seconds."""
        return sum(self.advance(interval) for _ in range(count))
