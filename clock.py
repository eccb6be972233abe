"""
Virtual-time clock with the ``call_later`` surface of an asyncio event loop.

The progress driver schedules ticks through ``call_later``; in production
that is the running loop, in simulations and tests it is a ManualClock
advanced explicitly.
"""

from __future__ import annotations

import heapq
import itertools
from typing import Callable

# Absorbs float drift when many equal intervals are summed.
_EPSILON = 1e-9


class ManualTimer:
    """Handle returned by ManualClock.call_later, mirrors asyncio.TimerHandle."""

    def __init__(self, when: float, callback: Callable, args: tuple):
        self._when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def when(self) -> float:
        return self._when

    def cancel(self) -> None:
        self._cancelled = True
        self._callback = None
        self._args = ()

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        callback, args = self._callback, self._args
        self.cancel()
        callback(*args)


class ManualClock:
    """Clock whose time only moves when advance() is called."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable, *args) -> ManualTimer:
        timer = ManualTimer(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (timer.when(), next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of scheduled timers that have not fired or been cancelled."""
        return sum(1 for _, _, t in self._queue if not t.cancelled())

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due timers in order. Returns how many fired.

        Timers scheduled by a callback fire in the same call if they fall due
        before the new time.
        """
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        deadline = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= deadline + _EPSILON:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled():
                continue
            self._now = when
            timer._run()
            fired += 1
        self._now = max(self._now, deadline)
        return fired
