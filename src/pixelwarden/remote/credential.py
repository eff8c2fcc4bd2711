"""Bearer token scraping from the canvas page.

The page embeds its session token in a script blob as ``"accessToken":"..."``.
We locate that literal marker and read up to the next double quote. Any
markup change upstream breaks this; it fails loudly with CredentialError.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

__all__ = ["CredentialError", "extract_access_token", "fetch_access_token"]

logger = logging.getLogger(__name__)

DEFAULT_MARKER = '"accessToken":"'


class CredentialError(RuntimeError):
    """The access token could not be obtained."""


def extract_access_token(text: str, marker: str = DEFAULT_MARKER) -> str:
    start = text.find(marker)
    if start < 0:
        raise CredentialError("access token marker not found in page")
    start += len(marker)
    end = text.find('"', start)
    if end < 0:
        raise CredentialError("unterminated access token value")
    token = text[start:end]
    if not token:
        raise CredentialError("empty access token")
    return token


async def fetch_access_token(
    session: aiohttp.ClientSession, page_url: str, *, marker: str = DEFAULT_MARKER
) -> str:
    """GET *page_url* and extract the bearer token from its body."""
    try:
        async with session.get(page_url) as resp:
            if resp.status != 200:
                raise CredentialError(f"canvas page returned HTTP {resp.status}")
            text = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise CredentialError(f"canvas page request failed: {e}") from e
    token = extract_access_token(text, marker)
    logger.debug("Access token obtained (%d chars)", len(token))
    return token
