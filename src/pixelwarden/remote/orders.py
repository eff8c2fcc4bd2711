"""
Orders document polling.

Fetches the tiered orders JSON (``[[[x, y, color], ...], ...]``) on a fixed
period and swaps the parsed value into the shared AgentContext when its
content changes. Failed or malformed fetches keep the previous orders and are
retried on the next tick.
"""

from __future__ import annotations

import asyncio
import json
import logging

import aiohttp
from pydantic import ValidationError

from pixelwarden.core.context import AgentContext
from pixelwarden.core.models import NoticeKind, parse_order_tiers, total_orders
from pixelwarden.core.notify import Notifier

__all__ = ["OrderStore"]

logger = logging.getLogger(__name__)


class OrderStore:
    """Keeps ``ctx.orders`` in sync with the remote orders document.

    Args:
        url: orders JSON location
        ctx: shared context whose ``orders`` reference is replaced
        session: aiohttp session (caller owns its lifecycle)
        notifier: receives an ORDERS_UPDATED notice on every replacement
        interval_s: refresh period (default 300 s)
    """

    def __init__(
        self,
        url: str,
        *,
        ctx: AgentContext,
        session: aiohttp.ClientSession,
        notifier: Notifier,
        interval_s: float = 300.0,
    ) -> None:
        self._url = url
        self._ctx = ctx
        self._session = session
        self._notifier = notifier
        self._interval = max(0.01, float(interval_s))
        self._stop_event = asyncio.Event()
        self._running = False
        self.refreshes = 0
        self.failures = 0

    async def refresh(self) -> bool:
        """Fetch once; return True when the held orders were replaced."""
        self.refreshes += 1
        try:
            async with self._session.get(self._url) as resp:
                if resp.status != 200:
                    self.failures += 1
                    logger.warning(
                        "Couldn't get orders (HTTP %d from %s)", resp.status, self._url
                    )
                    return False
                text = await resp.text()
            tiers = parse_order_tiers(json.loads(text))
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.failures += 1
            logger.warning("Couldn't get orders: %s", e)
            return False
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            self.failures += 1
            logger.warning("Couldn't parse orders: %s", e)
            return False

        if not self._ctx.replace_orders(tiers):
            logger.debug("Orders unchanged (%d tiers)", len(tiers))
            return False

        count = total_orders(tiers)
        logger.info("Orders replaced: %d tiers, %d pixels", len(tiers), count)
        await self._notifier.notify(
            NoticeKind.ORDERS_UPDATED,
            f"Obtained new orders for a total of {count} pixels",
        )
        return True

    async def run(self) -> None:
        """Refresh every interval until :meth:`stop` is called.

        The first refresh happens one interval in; callers that need orders
        right away call :meth:`refresh` before starting this loop.
        """
        if self._running:
            return
        self._running = True
        try:
            while not self._stop_event.is_set():
                if await self._wait_stop(self._interval):
                    break
                try:
                    await self.refresh()
                except asyncio.CancelledError:
                    raise
                except Exception:  # noqa: BLE001
                    logger.exception("Unexpected error refreshing orders")
        finally:
            self._running = False

    async def stop(self) -> None:
        self._stop_event.set()

    async def _wait_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    @property
    def url(self) -> str:
        return self._url

    @property
    def interval_s(self) -> float:
        return self._interval
