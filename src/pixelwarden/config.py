"""Runtime configuration helpers.

Small aggregator over :mod:`pixelwarden.settings.values`, environment
overrides and CLI arguments. ``make_runtime_config`` returns a frozen
:class:`RuntimeConfig` that the app hands to each component.

Precedence: CLI args > environment > values.yml > built-in fallbacks.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .settings.values import CANVAS, CLIENT, CREDENTIAL, ENDPOINTS, REALTIME, TIMING

logger = logging.getLogger(__name__)

ENV_ACCESS_TOKEN = "PIXELWARDEN_ACCESS_TOKEN"
ENV_ORDERS_URL = "PIXELWARDEN_ORDERS_URL"
ENV_HTTP_TIMEOUT = "PIXELWARDEN_HTTP_TIMEOUT_S"


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    canvas_page: str = ENDPOINTS["canvas_page"]
    orders: str = ENDPOINTS["orders"]
    realtime: str = ENDPOINTS["realtime"]
    mutation: str = ENDPOINTS["mutation"]


@dataclass(frozen=True, slots=True)
class ClientConfig:
    origin: str = CLIENT["origin"]
    referer: str = CLIENT["referer"]
    client_name: str = CLIENT["client_name"]
    token_marker: str = CREDENTIAL["marker"]


@dataclass(frozen=True, slots=True)
class RealtimeConfig:
    subprotocol: str = str(REALTIME["subprotocol"])
    handshake_timeout_s: float = float(REALTIME["handshake_timeout_s"])
    channel: Mapping[str, str] = field(
        default_factory=lambda: dict(REALTIME["channel"])
    )


@dataclass(frozen=True, slots=True)
class CanvasConfig:
    width: int = CANVAS["width"]
    height: int = CANVAS["height"]
    index: int = CANVAS["index"]

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True, slots=True)
class TimingConfig:
    orders_refresh_s: float = TIMING["orders_refresh_s"]
    map_retry_s: float = TIMING["map_retry_s"]
    parse_retry_s: float = TIMING["parse_retry_s"]
    idle_s: float = TIMING["idle_s"]
    cooldown_margin_ms: float = TIMING["cooldown_margin_ms"]
    http_timeout_s: float = TIMING["http_timeout_s"]


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    canvas: CanvasConfig = field(default_factory=CanvasConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    access_token: Optional[str] = None
    reauth_on_unauthorized: bool = False


def make_runtime_config(
    *, args: Optional[object] = None, environ: Optional[Mapping[str, str]] = None
) -> RuntimeConfig:
    """Build a RuntimeConfig from values, environment and CLI *args*.

    *args* is argparse.Namespace-like; only attributes that are present and
    not None override. *environ* defaults to ``os.environ``.
    """
    env = os.environ if environ is None else environ
    endpoints = EndpointConfig()
    timing = TimingConfig()
    token: Optional[str] = env.get(ENV_ACCESS_TOKEN) or None

    orders_url = env.get(ENV_ORDERS_URL)
    if orders_url:
        endpoints = replace(endpoints, orders=orders_url)

    raw_timeout = env.get(ENV_HTTP_TIMEOUT)
    if raw_timeout:
        try:
            timing = replace(timing, http_timeout_s=max(0.1, float(raw_timeout)))
        except ValueError:
            logger.warning("Invalid %s=%r", ENV_HTTP_TIMEOUT, raw_timeout)

    reauth = False
    if args is not None:
        a_token = getattr(args, "token", None)
        if a_token:
            token = a_token
        a_orders = getattr(args, "orders_url", None)
        if a_orders:
            endpoints = replace(endpoints, orders=a_orders)
        a_page = getattr(args, "page_url", None)
        if a_page:
            endpoints = replace(endpoints, canvas_page=a_page)
        reauth = bool(getattr(args, "reauth", False))

    return RuntimeConfig(
        endpoints=endpoints,
        timing=timing,
        access_token=token,
        reauth_on_unauthorized=reauth,
    )
