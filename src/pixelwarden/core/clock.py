"""Clock abstraction for the reconciliation loop.

Cooldown deadlines arrive as epoch timestamps, so the loop needs wall-clock
``now()`` plus an awaitable ``sleep``. Tests inject :class:`SimClock` to run
many cycles without waiting.

Real usage:
    clock = RealClock()
    await clock.sleep(clock.seconds_until(deadline))

Simulated usage (auto-advance, the default):
    clock = SimClock(start=1_700_000_000.0)
    await clock.sleep(30.0)      # returns at once
    clock.now()                  # 1_700_000_030.0
    clock.sleeps                 # [30.0]

Simulated usage (manual):
    clock = SimClock(auto_advance=False)
    task = asyncio.create_task(clock.sleep(5.0))
    clock.advance(5.0)           # wakes the sleeper
    await task
"""

from __future__ import annotations

import asyncio
import heapq
import time
from typing import Protocol

__all__ = ["Clock", "RealClock", "SimClock"]


class Clock(Protocol):
    def now(self) -> float:
        """Wall-clock time as seconds since the Unix epoch."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


def seconds_until(clock: Clock, deadline: float) -> float:
    """Non-negative delay from ``clock.now()`` to an epoch *deadline*."""
    return max(0.0, deadline - clock.now())


class RealClock:
    """System wall clock and asyncio.sleep."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))

    def seconds_until(self, deadline: float) -> float:
        return seconds_until(self, deadline)


class SimClock:
    """Deterministic virtual clock.

    With ``auto_advance`` (default) every ``sleep`` moves time forward by the
    requested amount and records it in :attr:`sleeps`. Without it, sleepers
    park until :meth:`advance` or :meth:`set_time` passes their due time.
    """

    def __init__(self, *, start: float = 0.0, auto_advance: bool = True) -> None:
        self._now = float(start)
        self._auto = auto_advance
        self.sleeps: list[float] = []
        # (due, seq, future) heap for manual mode
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = 0

    def now(self) -> float:
        return self._now

    def seconds_until(self, deadline: float) -> float:
        return seconds_until(self, deadline)

    async def sleep(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"Sleep duration must be non-negative: {seconds}")
        self.sleeps.append(seconds)
        if self._auto or seconds == 0:
            self._now += seconds
            await asyncio.sleep(0)
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._seq += 1
        heapq.heappush(self._sleepers, (self._now + seconds, self._seq, future))
        await future

    def advance(self, dt: float) -> None:
        if dt < 0:
            raise ValueError(f"Cannot advance time backwards: dt={dt}")
        self._now += dt
        self._wake_due()

    def set_time(self, t: float) -> None:
        if t < self._now:
            raise ValueError(f"Cannot set time backwards: {t} < {self._now}")
        self._now = t
        self._wake_due()

    def _wake_due(self) -> None:
        while self._sleepers and self._sleepers[0][0] <= self._now:
            _, _, future = heapq.heappop(self._sleepers)
            if not future.done():
                future.set_result(None)

    def next_due(self) -> float | None:
        return self._sleepers[0][0] if self._sleepers else None
