"""Agent runner (application entrypoint).

Builds the shared context and the remote clients from a
:class:`~pixelwarden.config.RuntimeConfig`, then runs the order refresher and
the reconciliation engine side by side until stopped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from pixelwarden.config import RuntimeConfig
from pixelwarden.core.clock import Clock, RealClock
from pixelwarden.core.context import AgentContext
from pixelwarden.core.events import EventBus, Subscription
from pixelwarden.core.models import NoticeKind
from pixelwarden.core.notify import (
    STATUS_TOPIC,
    BusNotifier,
    Notifier,
    decode_notification,
    log_notification,
)
from pixelwarden.engine.reconciler import ReconciliationEngine
from pixelwarden.remote.canvas_feed import CanvasFeed
from pixelwarden.remote.credential import fetch_access_token
from pixelwarden.remote.orders import OrderStore
from pixelwarden.remote.submitter import ActionSubmitter

__all__ = ["Agent"]

logger = logging.getLogger(__name__)


async def _log_status(sub: Subscription) -> None:
    async for env in sub:
        try:
            log_notification(decode_notification(env.payload))
        except Exception:  # noqa: BLE001
            logger.debug("Undecodable status payload dropped", exc_info=True)


class Agent:
    """Owns the session, bus and services for one agent process.

    Args:
        cfg: runtime configuration
        clock: clock for the engine loop (default: real time)
        session: optional external aiohttp session; never closed here
    """

    def __init__(
        self,
        cfg: RuntimeConfig,
        *,
        clock: Optional[Clock] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.cfg = cfg
        self.ctx = AgentContext()
        self.bus = EventBus()
        self.notifier: Notifier = BusNotifier(self.bus, topic=STATUS_TOPIC)
        self._clock = clock or RealClock()
        self._ext_session = session
        self.engine: Optional[ReconciliationEngine] = None
        self.orders: Optional[OrderStore] = None

    async def _acquire_credential(self, session: aiohttp.ClientSession) -> None:
        if self.cfg.access_token:
            self.ctx.replace_credential(self.cfg.access_token)
            return
        await self.notifier.notify(NoticeKind.CREDENTIAL, "Obtaining access token...")
        token = await fetch_access_token(
            session,
            self.cfg.endpoints.canvas_page,
            marker=self.cfg.client.token_marker,
        )
        self.ctx.replace_credential(token)
        await self.notifier.notify(NoticeKind.CREDENTIAL, "Obtained access token!")

    def _build(self, session: aiohttp.ClientSession) -> None:
        cfg = self.cfg
        self.orders = OrderStore(
            cfg.endpoints.orders,
            ctx=self.ctx,
            session=session,
            notifier=self.notifier,
            interval_s=cfg.timing.orders_refresh_s,
        )
        feed = CanvasFeed(
            cfg.endpoints.realtime,
            ctx=self.ctx,
            session=session,
            channel=cfg.realtime.channel,
            size=cfg.canvas.size,
            subprotocol=cfg.realtime.subprotocol,
            origin=cfg.client.origin,
            handshake_timeout_s=cfg.realtime.handshake_timeout_s,
        )
        submitter = ActionSubmitter(
            cfg.endpoints.mutation,
            ctx=self.ctx,
            session=session,
            origin=cfg.client.origin,
            referer=cfg.client.referer,
            client_name=cfg.client.client_name,
            canvas_index=cfg.canvas.index,
        )

        async def _reacquire() -> None:
            token = await fetch_access_token(
                session, cfg.endpoints.canvas_page, marker=cfg.client.token_marker
            )
            self.ctx.replace_credential(token)
            logger.info("Access token re-acquired")

        self.engine = ReconciliationEngine(
            ctx=self.ctx,
            canvas=feed,
            submitter=submitter,
            notifier=self.notifier,
            clock=self._clock,
            timing=cfg.timing,
            reauthenticate=_reacquire if cfg.reauth_on_unauthorized else None,
        )

    async def run(self, *, max_cycles: Optional[int] = None) -> None:
        """Acquire the credential, load orders, and reconcile until stopped.

        ``CredentialError`` from the initial token fetch propagates.
        """
        status_task = asyncio.create_task(
            _log_status(self.bus.subscribe(STATUS_TOPIC)), name="status_log"
        )
        session = self._ext_session or aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.cfg.timing.http_timeout_s)
        )
        orders_task: Optional[asyncio.Task[None]] = None
        try:
            await self._acquire_credential(session)
            self._build(session)
            assert self.orders is not None and self.engine is not None
            await self.orders.refresh()
            orders_task = asyncio.create_task(self.orders.run(), name="orders")
            await self.engine.run(max_cycles=max_cycles)
        finally:
            if self.orders is not None:
                await self.orders.stop()
            if orders_task is not None:
                orders_task.cancel()
                await asyncio.gather(orders_task, return_exceptions=True)
            if self._ext_session is None:
                await session.close()
            await self.bus.close()
            await asyncio.gather(status_task, return_exceptions=True)

    async def stop(self) -> None:
        if self.engine is not None:
            await self.engine.stop()
        if self.orders is not None:
            await self.orders.stop()
