"""Centralized value sets loaded from YAML.

The master source is ``values.yml`` in this package: endpoint URLs, client
headers, the realtime channel descriptor, canvas geometry, loop timings and
the color palette.

On import we attempt to load and parse the YAML. Failures fall back to
hard-coded defaults so the agent can still run. The fallbacks mirror the
shipped ``values.yml``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

logger = logging.getLogger(__name__)

_PKG_DIR = Path(__file__).parent
_YAML_PATH = _PKG_DIR / "values.yml"

# --- Fallback literals ----------------------------------------------------
_FALLBACK_ENDPOINTS = {
    "canvas_page": "https://www.reddit.com/r/place/",
    "orders": "https://raw.githubusercontent.com/ForsenPlace/Orders/main/orders.json",
    "realtime": "wss://gql-realtime-2.reddit.com/query",
    "mutation": "https://gql-realtime-2.reddit.com/query",
}
_FALLBACK_CREDENTIAL = {"marker": '"accessToken":"'}
_FALLBACK_CLIENT = {
    "origin": "https://hot-potato.reddit.com",
    "referer": "https://hot-potato.reddit.com/",
    "client_name": "mona-lisa",
}
_FALLBACK_REALTIME: Dict[str, Any] = {
    "subprotocol": "graphql-ws",
    "handshake_timeout_s": 20.0,
    "channel": {"teamOwner": "AFD2022", "category": "CANVAS", "tag": "0"},
}
_FALLBACK_CANVAS = {"width": 1000, "height": 1000, "index": 0}
_FALLBACK_TIMING = {
    "orders_refresh_s": 300.0,
    "map_retry_s": 15.0,
    "parse_retry_s": 15.0,
    "idle_s": 30.0,
    "cooldown_margin_ms": 3000.0,
    "http_timeout_s": 10.0,
}
_FALLBACK_PALETTE = [
    {"key": "#FF4500", "index": 2, "name": "red"},
    {"key": "#FFA800", "index": 3, "name": "orange"},
    {"key": "#FFD635", "index": 4, "name": "yellow"},
    {"key": "#00A368", "index": 6, "name": "dark green"},
    {"key": "#7EED56", "index": 8, "name": "light green"},
    {"key": "#2450A4", "index": 12, "name": "dark blue"},
    {"key": "#3690EA", "index": 13, "name": "blue"},
    {"key": "#51E9F4", "index": 14, "name": "light blue"},
    {"key": "#811E9F", "index": 18, "name": "dark purple"},
    {"key": "#B44AC0", "index": 19, "name": "purple"},
    {"key": "#FF99AA", "index": 23, "name": "light pink"},
    {"key": "#9C6926", "index": 25, "name": "brown"},
    {"key": "#000000", "index": 27, "name": "black"},
    {"key": "#898D90", "index": 29, "name": "gray"},
    {"key": "#D4D7D9", "index": 30, "name": "light gray"},
    {"key": "#FFFFFF", "index": 31, "name": "white"},
]


def _merge_str_section(base: Dict[str, str], raw: Any) -> Dict[str, str]:
    out = dict(base)
    if isinstance(raw, dict):
        for k, v in raw.items():
            if k in out and isinstance(v, str) and v:
                out[k] = v
    return out


def _merge_num_section(base: Dict[str, float], raw: Any) -> Dict[str, float]:
    out = dict(base)
    if isinstance(raw, dict):
        for k, v in raw.items():
            if k not in out:
                continue
            try:
                out[k] = float(v)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric value %s=%r", k, v)
    return out


def _valid_palette(raw: Any) -> List[Dict[str, Any]] | None:
    if not isinstance(raw, list) or not raw:
        return None
    entries: List[Dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        key = item.get("key")
        idx = item.get("index")
        if not isinstance(key, str) or not isinstance(idx, int):
            return None
        name = item.get("name")
        entries.append(
            {"key": key, "index": idx, "name": name if isinstance(name, str) else None}
        )
    return entries


# --- Load YAML -----------------------------------------------------------
_endpoints: Dict[str, str] = dict(_FALLBACK_ENDPOINTS)
_credential: Dict[str, str] = dict(_FALLBACK_CREDENTIAL)
_client: Dict[str, str] = dict(_FALLBACK_CLIENT)
_realtime: Dict[str, Any] = dict(_FALLBACK_REALTIME)
_canvas: Dict[str, float] = dict(_FALLBACK_CANVAS)
_timing: Dict[str, float] = dict(_FALLBACK_TIMING)
_palette: List[Dict[str, Any]] = [dict(e) for e in _FALLBACK_PALETTE]

if _YAML_PATH.exists():  # pragma: no branch - simple path
    try:
        with _YAML_PATH.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        _endpoints = _merge_str_section(_endpoints, raw.get("endpoints"))
        _credential = _merge_str_section(_credential, raw.get("credential"))
        _client = _merge_str_section(_client, raw.get("client"))

        rt = raw.get("realtime", {})
        if isinstance(rt, dict):
            if isinstance(rt.get("subprotocol"), str):
                _realtime["subprotocol"] = rt["subprotocol"]
            try:
                _realtime["handshake_timeout_s"] = float(
                    rt.get("handshake_timeout_s", _realtime["handshake_timeout_s"])
                )
            except (TypeError, ValueError):
                pass
            channel = rt.get("channel")
            if isinstance(channel, dict):
                _realtime["channel"] = {str(k): str(v) for k, v in channel.items()}

        _canvas = _merge_num_section(_canvas, raw.get("canvas"))
        _timing = _merge_num_section(_timing, raw.get("timing"))

        pal = _valid_palette(raw.get("palette"))
        if pal is not None:
            _palette = pal
        elif "palette" in raw:
            logger.warning("values.yml palette is malformed; using built-in palette")
    except Exception:  # pragma: no cover - corrupt file
        logger.warning("Failed to load %s; using defaults", _YAML_PATH, exc_info=True)

# Public constants --------------------------------------------------------
ENDPOINTS: Dict[str, str] = _endpoints
CREDENTIAL: Dict[str, str] = _credential
CLIENT: Dict[str, str] = _client
REALTIME: Dict[str, Any] = _realtime
CANVAS: Dict[str, int] = {k: int(v) for k, v in _canvas.items()}
TIMING: Dict[str, float] = _timing
PALETTE_ENTRIES: List[Dict[str, Any]] = _palette

__all__ = [
    "ENDPOINTS",
    "CREDENTIAL",
    "CLIENT",
    "REALTIME",
    "CANVAS",
    "TIMING",
    "PALETTE_ENTRIES",
]
