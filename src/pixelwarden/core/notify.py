"""Notification sinks.

The engine and order store report progress through a :class:`Notifier`.
:class:`BusNotifier` publishes each :class:`Notification` onto the event bus
(topic ``status``); :class:`LogNotifier` writes it to the log directly.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pixelwarden.core.events import EventBus, pack, unpack
from pixelwarden.core.models import NoticeKind, Notification

__all__ = [
    "Notifier",
    "BusNotifier",
    "LogNotifier",
    "STATUS_TOPIC",
    "decode_notification",
    "log_notification",
]

logger = logging.getLogger(__name__)

STATUS_TOPIC = "status"

_WARN_KINDS = {NoticeKind.MAP_ERROR, NoticeKind.PARSE_ERROR, NoticeKind.RATE_LIMITED}


class Notifier(Protocol):
    async def notify(
        self, kind: NoticeKind, text: str, *, duration_s: float | None = None
    ) -> None:
        ...


def log_notification(n: Notification) -> None:
    level = logging.WARNING if n.kind in _WARN_KINDS else logging.INFO
    logger.log(level, "[%s] %s", n.kind.value, n.text)


def decode_notification(payload: bytes) -> Notification:
    data: Any = unpack(payload)
    return Notification.model_validate(data)


class BusNotifier:
    """Publish notifications on an EventBus topic as msgpack'd dicts."""

    def __init__(self, bus: EventBus, *, topic: str = STATUS_TOPIC) -> None:
        self._bus = bus
        self._topic = topic

    async def notify(
        self, kind: NoticeKind, text: str, *, duration_s: float | None = None
    ) -> None:
        n = Notification(kind=kind, text=text, duration_s=duration_s)
        if self._bus.closed:
            log_notification(n)
            return
        await self._bus.publish(self._topic, pack(n.model_dump(mode="json")))


class LogNotifier:
    """Write notifications straight to the log."""

    async def notify(
        self, kind: NoticeKind, text: str, *, duration_s: float | None = None
    ) -> None:
        log_notification(Notification(kind=kind, text=text, duration_s=duration_s))
