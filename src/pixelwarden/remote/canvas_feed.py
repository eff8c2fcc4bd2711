"""
Realtime canvas snapshot acquisition.

Two phases:

1. Handshake over the realtime websocket (``graphql-ws`` subprotocol): send
   ``connection_init`` with the bearer credential, then a ``start`` message
   subscribing to the canvas channel. The first inbound message announcing a
   full frame carries the frame image URL; we close the socket and return it.
2. Download the frame image (plain GET, no credentials) and decode it with
   Pillow into a :class:`~pixelwarden.core.canvas.CanvasSnapshot`.

Every failure surfaces as :class:`CanvasUnavailable`, which the engine treats
as retryable. The handshake is bounded by ``handshake_timeout_s``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import aiohttp
from PIL import UnidentifiedImageError

from pixelwarden.core.canvas import CanvasSnapshot
from pixelwarden.core.context import AgentContext

__all__ = [
    "CanvasFeed",
    "CanvasUnavailable",
    "SUBSCRIBE_QUERY",
    "extract_frame_url",
    "init_message",
    "subscribe_message",
]

logger = logging.getLogger(__name__)

SUBSCRIBE_QUERY = (
    "subscription replace($input: SubscribeInput!) { subscribe(input: $input) "
    "{ id ... on BasicMessage { data { __typename ... on FullFrameMessageData "
    "{ __typename name timestamp } } __typename } __typename } }"
)

_ERROR_TYPES = {"connection_error", "error"}


class CanvasUnavailable(RuntimeError):
    """The current canvas frame could not be resolved or decoded."""


def init_message(authorization: str) -> dict[str, Any]:
    return {"type": "connection_init", "payload": {"Authorization": authorization}}


def subscribe_message(channel: Mapping[str, str], sub_id: str = "1") -> dict[str, Any]:
    return {
        "id": sub_id,
        "type": "start",
        "payload": {
            "variables": {"input": {"channel": dict(channel)}},
            "extensions": {},
            "operationName": "replace",
            "query": SUBSCRIBE_QUERY,
        },
    }


def extract_frame_url(message: Any) -> Optional[str]:
    """Return the frame image name from ``payload.data.subscribe.data``.

    Messages without that path (acks, keep-alives, diffs without a name)
    yield None.
    """
    if not isinstance(message, dict):
        return None
    node: Any = message
    for key in ("payload", "data", "subscribe", "data"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if not isinstance(node, dict):
        return None
    typename = node.get("__typename")
    if typename is not None and typename != "FullFrameMessageData":
        return None
    name = node.get("name")
    return name if isinstance(name, str) and name else None


class CanvasFeed:
    """Resolves and decodes the current full canvas frame.

    Args:
        url: realtime websocket endpoint
        ctx: shared context (credential is read on every handshake)
        session: aiohttp session (caller owns its lifecycle)
        channel: subscribe channel descriptor (teamOwner/category/tag)
        size: canvas surface size in pixels
        subprotocol: websocket subprotocol token
        origin: Origin header sent with the websocket upgrade
        handshake_timeout_s: upper bound for phase 1
    """

    def __init__(
        self,
        url: str,
        *,
        ctx: AgentContext,
        session: aiohttp.ClientSession,
        channel: Mapping[str, str],
        size: tuple[int, int] = (1000, 1000),
        subprotocol: str = "graphql-ws",
        origin: Optional[str] = None,
        handshake_timeout_s: float = 20.0,
    ) -> None:
        self._url = url
        self._ctx = ctx
        self._session = session
        self._channel = dict(channel)
        self._size = size
        self._subprotocol = subprotocol
        self._origin = origin
        self._timeout_s = float(handshake_timeout_s)

    async def fetch(self) -> CanvasSnapshot:
        frame_url = await self.resolve_frame_url()
        return await self.download(frame_url)

    async def resolve_frame_url(self) -> str:
        try:
            return await asyncio.wait_for(self._handshake(), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            raise CanvasUnavailable(
                f"no full frame within {self._timeout_s:.1f}s"
            ) from None
        except aiohttp.ClientError as e:
            raise CanvasUnavailable(f"realtime channel failed: {e}") from e

    async def _handshake(self) -> str:
        async with self._session.ws_connect(
            self._url, protocols=(self._subprotocol,), origin=self._origin
        ) as ws:
            await ws.send_json(init_message(self._ctx.authorization))
            await ws.send_json(subscribe_message(self._channel))
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        parsed = json.loads(msg.data)
                    except ValueError:
                        logger.debug("Ignoring non-JSON realtime message")
                        continue
                    if isinstance(parsed, dict) and parsed.get("type") in _ERROR_TYPES:
                        raise CanvasUnavailable(
                            f"realtime channel error: {parsed.get('payload')!r}"
                        )
                    frame_url = extract_frame_url(parsed)
                    if frame_url is not None:
                        logger.debug("Full frame announced: %s", frame_url)
                        return frame_url
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise CanvasUnavailable(f"realtime channel error: {ws.exception()}")
        raise CanvasUnavailable("realtime channel closed before a full frame")

    async def download(self, frame_url: str) -> CanvasSnapshot:
        try:
            async with self._session.get(frame_url) as resp:
                if resp.status != 200:
                    raise CanvasUnavailable(
                        f"frame download returned HTTP {resp.status}"
                    )
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CanvasUnavailable(f"frame download failed: {e}") from e

        loop = asyncio.get_running_loop()
        try:
            # Pillow decode is CPU-bound; keep it off the event loop
            return await loop.run_in_executor(
                None, lambda: CanvasSnapshot.from_bytes(data, size=self._size)
            )
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise CanvasUnavailable(f"frame decode failed: {e}") from e
