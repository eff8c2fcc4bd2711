"""Async in-process event bus with bounded per-subscriber queues.

Used to fan status notifications out to whoever is listening (the CLI's log
consumer, a future UI) without the engine knowing about them.

    bus = EventBus(default_maxsize=64)
    sub = bus.subscribe("status")
    await bus.publish("status", pack({"text": "hi"}))
    env = await sub.__anext__()
    unpack(env.payload)  # {"text": "hi"}

Notes
-----
- Backpressure is drop-oldest: a slow subscriber loses its oldest messages,
  publishers never block.
- close() ends every subscription's async iteration.
- Payloads are msgpack bytes (see pack/unpack).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Any, AsyncIterator, Dict, List

import msgpack

__all__ = ["EventBus", "Subscription", "Envelope", "pack", "unpack"]


@dataclass(slots=True)
class Envelope:
    topic: str
    ts: float
    payload: bytes


_Sentinel = object()


class EventBus:
    """Topic-based pub/sub with drop-oldest backpressure."""

    def __init__(self, *, default_maxsize: int = 256) -> None:
        self._maxsize = max(1, int(default_maxsize))
        self._subscribers: Dict[str, List[asyncio.Queue[Envelope | object]]] = {}
        self._closed = False
        self.drops = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, topic: str) -> "Subscription":
        if self._closed:
            raise RuntimeError("EventBus is closed")
        # Unbounded queue; the size cap is enforced in publish so the close
        # sentinel always fits
        queue: asyncio.Queue[Envelope | object] = asyncio.Queue()
        self._subscribers.setdefault(topic, []).append(queue)
        return Subscription(self, topic, queue)

    async def publish(self, topic: str, payload: bytes) -> None:
        if self._closed:
            raise RuntimeError("EventBus is closed")
        env = Envelope(topic=topic, ts=monotonic(), payload=payload)
        for q in list(self._subscribers.get(topic, ())):
            if q.qsize() >= self._maxsize:
                q.get_nowait()
                self.drops += 1
            q.put_nowait(env)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queues in self._subscribers.values():
            for q in queues:
                q.put_nowait(_Sentinel)

    def _remove(self, topic: str, queue: asyncio.Queue[Envelope | object]) -> None:
        queues = self._subscribers.get(topic)
        if queues and queue in queues:
            queues.remove(queue)


class Subscription:
    """Async iterator over Envelopes for one topic."""

    def __init__(
        self, bus: EventBus, topic: str, queue: asyncio.Queue[Envelope | object]
    ) -> None:
        self._bus = bus
        self._topic = topic
        self._queue = queue
        self._closed = False

    def __aiter__(self) -> AsyncIterator[Envelope]:
        return self

    async def __anext__(self) -> Envelope:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _Sentinel:
            self._closed = True
            raise StopAsyncIteration
        assert isinstance(item, Envelope)
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._queue.put_nowait(_Sentinel)
        self._bus._remove(self._topic, self._queue)


def pack(obj: Any) -> bytes:
    """Serialize an object to bytes using msgpack."""
    return msgpack.packb(obj, use_bin_type=True)


def unpack(b: bytes) -> Any:
    """Deserialize bytes into an object using msgpack."""
    return msgpack.unpackb(b, raw=False, strict_map_key=False)
