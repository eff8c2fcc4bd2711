"""Reconciliation engine.

One cycle walks ``ACQUIRING_SNAPSHOT -> SCANNING -> SUBMITTING ->
INTERPRETING`` and ends with a :class:`CycleResult` saying how long to sleep
before the next one. :meth:`ReconciliationEngine.run` is the control loop:
run a cycle, sleep for its delay on the injected clock, repeat.

At most one pixel is submitted per cycle, and the next cycle starts only after
the previous response has been interpreted. Every failure (map acquisition,
rate limit, malformed response, transport error) ends the cycle with a retry
delay; none of them stop the loop.

Example (tests drive it the same way):

    engine = ReconciliationEngine(
        ctx=ctx, canvas=feed, submitter=submitter, notifier=notifier,
        clock=SimClock(start=1_700_000_000.0),
    )
    result = await engine.run_cycle()
    result.outcome, result.delay_s
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import aiohttp

from pixelwarden.config import TimingConfig
from pixelwarden.core.canvas import CanvasSnapshot
from pixelwarden.core.clock import Clock, RealClock, seconds_until
from pixelwarden.core.context import AgentContext
from pixelwarden.core.models import NoticeKind, Order, OrderTiers
from pixelwarden.core.notify import Notifier
from pixelwarden.core.palette import Palette, default_palette
from pixelwarden.engine.responses import InterpretationKind, interpret_response
from pixelwarden.remote.canvas_feed import CanvasUnavailable
from pixelwarden.remote.credential import CredentialError
from pixelwarden.remote.submitter import RawResponse

__all__ = [
    "CanvasSource",
    "PixelSubmitter",
    "CycleState",
    "Outcome",
    "CycleResult",
    "Mismatch",
    "ReconciliationEngine",
]

logger = logging.getLogger(__name__)

_UNAUTHORIZED = {401, 403}


class CanvasSource(Protocol):
    async def fetch(self) -> CanvasSnapshot:
        ...


class PixelSubmitter(Protocol):
    async def submit_pixel(self, x: int, y: int, color_index: int) -> RawResponse:
        ...


class CycleState(str, Enum):
    IDLE = "idle"
    ACQUIRING_SNAPSHOT = "acquiring_snapshot"
    SCANNING = "scanning"
    SUBMITTING = "submitting"
    INTERPRETING = "interpreting"
    SLEEPING = "sleeping"


class Outcome(str, Enum):
    MAP_ERROR = "map_error"
    ALL_CORRECT = "all_correct"
    PLACED = "placed"
    RATE_LIMITED = "rate_limited"
    PARSE_ERROR = "parse_error"
    SUBMIT_ERROR = "submit_error"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True, slots=True)
class Mismatch:
    order: Order
    current_index: Optional[int]


@dataclass(frozen=True, slots=True)
class CycleResult:
    outcome: Outcome
    delay_s: float
    order: Optional[Order] = None
    deadline_ms: Optional[float] = None


class ReconciliationEngine:
    """Keeps the canvas in line with ``ctx.orders``, one pixel per cycle.

    Parameters
    ----------
    ctx:
        Shared context; ``ctx.orders`` is read once per SCANNING phase.
    canvas:
        Produces a fresh :class:`CanvasSnapshot` per cycle, raising
        :class:`CanvasUnavailable` on failure.
    submitter:
        Sends the single correction and returns the raw response.
    notifier:
        Receives human-readable progress notices.
    clock:
        Wall clock + sleep; defaults to :class:`RealClock`.
    timing:
        Retry delays and cooldown margin.
    reauthenticate:
        Optional coroutine factory called when the mutation endpoint answers
        401/403. When omitted such responses go through normal interpretation.
    """

    def __init__(
        self,
        *,
        ctx: AgentContext,
        canvas: CanvasSource,
        submitter: PixelSubmitter,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        palette: Optional[Palette] = None,
        timing: Optional[TimingConfig] = None,
        reauthenticate: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._ctx = ctx
        self._canvas = canvas
        self._submitter = submitter
        self._notifier = notifier
        self._clock: Clock = clock or RealClock()
        self._palette = palette or default_palette()
        self._timing = timing or TimingConfig()
        self._reauthenticate = reauthenticate
        self._state = CycleState.IDLE
        self._stop_event = asyncio.Event()
        self._running = False
        self.cycles = 0
        self.last_result: Optional[CycleResult] = None

    @property
    def state(self) -> CycleState:
        return self._state

    def _enter(self, state: CycleState) -> None:
        logger.debug("engine %s -> %s", self._state.value, state.value)
        self._state = state

    # Control loop --------------------------------------------------------
    async def run(self, *, max_cycles: Optional[int] = None) -> None:
        """Run cycles until :meth:`stop` (or *max_cycles* cycles)."""
        if self._running:
            return
        self._running = True
        try:
            while not self._stop_event.is_set():
                try:
                    result = await self.run_cycle()
                except asyncio.CancelledError:
                    raise
                except Exception:  # noqa: BLE001
                    logger.exception("Unexpected error in reconciliation cycle")
                    result = CycleResult(
                        Outcome.PARSE_ERROR, self._timing.parse_retry_s
                    )
                if max_cycles is not None and self.cycles >= max_cycles:
                    break
                self._enter(CycleState.SLEEPING)
                await self._sleep_or_stop(result.delay_s)
        finally:
            self._running = False
            self._enter(CycleState.IDLE)

    async def stop(self) -> None:
        self._stop_event.set()

    async def _sleep_or_stop(self, delay_s: float) -> None:
        sleeper = asyncio.ensure_future(self._clock.sleep(delay_s))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for t in (sleeper, stopper):
                if not t.done():
                    t.cancel()
            await asyncio.gather(sleeper, stopper, return_exceptions=True)

    # One cycle -----------------------------------------------------------
    async def run_cycle(self) -> CycleResult:
        self.cycles += 1
        result = await self._cycle()
        self.last_result = result
        logger.info(
            "cycle %d: %s, next in %.1fs",
            self.cycles,
            result.outcome.value,
            result.delay_s,
        )
        return result

    async def _cycle(self) -> CycleResult:
        self._enter(CycleState.ACQUIRING_SNAPSHOT)
        try:
            snapshot = await self._canvas.fetch()
        except CanvasUnavailable as e:
            logger.warning("Error obtaining map: %s", e)
            delay = self._timing.map_retry_s
            await self._notifier.notify(
                NoticeKind.MAP_ERROR,
                f"Couldn't get map. Trying again in {delay:g} seconds...",
                duration_s=delay,
            )
            return CycleResult(Outcome.MAP_ERROR, delay)

        self._enter(CycleState.SCANNING)
        mismatch = self.find_mismatch(snapshot, self._ctx.orders)
        if mismatch is None:
            delay = self._timing.idle_s
            await self._notifier.notify(
                NoticeKind.ALL_CORRECT,
                f"Every pixel is correct! checking again in {delay:g} seconds...",
                duration_s=delay,
            )
            return CycleResult(Outcome.ALL_CORRECT, delay)

        return await self._correct(mismatch)

    def find_mismatch(
        self, snapshot: CanvasSnapshot, tiers: OrderTiers
    ) -> Optional[Mismatch]:
        """First order, in priority order, whose pixel differs from its target."""
        for tier in tiers:
            for order in tier:
                if not snapshot.contains(order.x, order.y):
                    logger.debug("Order outside canvas skipped: %r", order)
                    continue
                current = snapshot.color_index_at(order.x, order.y, self._palette)
                if current == order.color_index:
                    continue
                return Mismatch(order=order, current_index=current)
        return None

    async def _correct(self, mismatch: Mismatch) -> CycleResult:
        order = mismatch.order
        pal = self._palette
        self._enter(CycleState.SUBMITTING)
        await self._notifier.notify(
            NoticeKind.FIXING,
            f"Fixing wrong pixel on {order.x}, {order.y}. Changing from "
            f"{pal.describe(mismatch.current_index)} to "
            f"{pal.describe(order.color_index)}",
        )
        try:
            raw = await self._submitter.submit_pixel(
                order.x, order.y, order.color_index
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Error submitting pixel: %s", e)
            delay = self._timing.parse_retry_s
            await self._notifier.notify(
                NoticeKind.PARSE_ERROR,
                f"Couldn't submit pixel. Trying again in {delay:g} seconds...",
                duration_s=delay,
            )
            return CycleResult(Outcome.SUBMIT_ERROR, delay, order=order)

        self._enter(CycleState.INTERPRETING)
        if raw.status in _UNAUTHORIZED and self._reauthenticate is not None:
            return await self._recover_credential(order, raw)
        return await self._interpret(order, raw)

    async def _interpret(self, order: Order, raw: RawResponse) -> CycleResult:
        verdict = interpret_response(raw.body)
        if verdict.kind is InterpretationKind.MALFORMED:
            logger.warning(
                "Error parsing response (HTTP %d): %s", raw.status, verdict.detail
            )
            delay = self._timing.parse_retry_s
            await self._notifier.notify(
                NoticeKind.PARSE_ERROR,
                "Error parsing response after placing pixel. "
                f"Trying again in {delay:g} seconds...",
                duration_s=delay,
            )
            return CycleResult(Outcome.PARSE_ERROR, delay, order=order)

        deadline_ms = verdict.deadline_ms(self._timing.cooldown_margin_ms)
        assert deadline_ms is not None
        deadline_s = deadline_ms / 1000.0
        delay = seconds_until(self._clock, deadline_s)
        at = datetime.fromtimestamp(deadline_s).strftime("%H:%M:%S")

        if verdict.kind is InterpretationKind.RATE_LIMITED:
            await self._notifier.notify(
                NoticeKind.RATE_LIMITED,
                f"Too early to place pixel! Next pixel at {at}",
                duration_s=delay,
            )
            return CycleResult(Outcome.RATE_LIMITED, delay, order, deadline_ms)

        await self._notifier.notify(
            NoticeKind.PLACED,
            f"Pixel placed on {order.x}, {order.y}! Next pixel at {at}",
            duration_s=delay,
        )
        return CycleResult(Outcome.PLACED, delay, order, deadline_ms)

    async def _recover_credential(self, order: Order, raw: RawResponse) -> CycleResult:
        assert self._reauthenticate is not None
        logger.warning("Mutation rejected with HTTP %d; re-acquiring token", raw.status)
        delay = self._timing.parse_retry_s
        await self._notifier.notify(
            NoticeKind.CREDENTIAL,
            "Access token rejected. Obtaining a new one and retrying in "
            f"{delay:g} seconds...",
            duration_s=delay,
        )
        try:
            await self._reauthenticate()
        except CredentialError as e:
            logger.warning("Couldn't re-acquire access token: %s", e)
        return CycleResult(Outcome.UNAUTHORIZED, delay, order=order)
