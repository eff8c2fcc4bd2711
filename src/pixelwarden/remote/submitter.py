"""Single-pixel mutation transport.

Posts one ``setPixel`` mutation and hands back the raw status and body. No
interpretation happens here; see :mod:`pixelwarden.engine.responses`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from pixelwarden.core.context import AgentContext

__all__ = ["ActionSubmitter", "RawResponse", "SET_PIXEL_QUERY", "set_pixel_payload"]

logger = logging.getLogger(__name__)

SET_PIXEL_QUERY = (
    "mutation setPixel($input: ActInput!) { act(input: $input) { data { ... on "
    "BasicMessage { id data { ... on GetUserCooldownResponseMessageData { "
    "nextAvailablePixelTimestamp __typename } ... on SetPixelResponseMessageData "
    "{ timestamp __typename } __typename } __typename } __typename } __typename } }"
)


@dataclass(frozen=True, slots=True)
class RawResponse:
    status: int
    body: str


def set_pixel_payload(
    x: int, y: int, color_index: int, canvas_index: int = 0
) -> dict[str, Any]:
    return {
        "operationName": "setPixel",
        "variables": {
            "input": {
                "actionName": "r/replace:set_pixel",
                "PixelMessageData": {
                    "coordinate": {"x": x, "y": y},
                    "colorIndex": color_index,
                    "canvasIndex": canvas_index,
                },
            }
        },
        "query": SET_PIXEL_QUERY,
    }


class ActionSubmitter:
    """Issues authenticated setPixel mutations.

    Transport errors (``aiohttp.ClientError``, timeouts) propagate to the
    caller unchanged.
    """

    def __init__(
        self,
        url: str,
        *,
        ctx: AgentContext,
        session: aiohttp.ClientSession,
        origin: str,
        referer: str,
        client_name: str,
        canvas_index: int = 0,
    ) -> None:
        self._url = url
        self._ctx = ctx
        self._session = session
        self._origin = origin
        self._referer = referer
        self._client_name = client_name
        self._canvas_index = canvas_index

    def headers(self) -> dict[str, str]:
        return {
            "origin": self._origin,
            "referer": self._referer,
            "apollographql-client-name": self._client_name,
            "Authorization": self._ctx.authorization,
            "Content-Type": "application/json",
        }

    async def submit_pixel(self, x: int, y: int, color_index: int) -> RawResponse:
        payload = set_pixel_payload(x, y, color_index, self._canvas_index)
        async with self._session.post(
            self._url, data=json.dumps(payload), headers=self.headers()
        ) as resp:
            # Invalid UTF-8 is replaced so the body still reaches interpretation
            body = (await resp.read()).decode("utf-8", errors="replace")
            logger.debug("setPixel (%d, %d) -> HTTP %d", x, y, resp.status)
            return RawResponse(status=resp.status, body=body)
