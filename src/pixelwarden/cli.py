"""Command-line interface for pixelwarden.

``pixelwarden`` and ``python -m pixelwarden`` both land in :func:`main`.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pixelwarden import __version__
from pixelwarden.app.agent import Agent
from pixelwarden.config import make_runtime_config
from pixelwarden.remote.credential import CredentialError

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments.

    When ``argv`` is None the values are read from ``sys.argv`` as usual.
    """
    p = argparse.ArgumentParser(
        prog="pixelwarden",
        description="Keep a shared pixel canvas in line with a list of orders",
    )
    p.add_argument(
        "--token",
        default=None,
        help="Bearer token to use instead of scraping it from the canvas page",
    )
    p.add_argument(
        "--orders-url",
        dest="orders_url",
        default=None,
        help="Orders JSON URL (overrides values.yml and PIXELWARDEN_ORDERS_URL)",
    )
    p.add_argument(
        "--page-url",
        dest="page_url",
        default=None,
        help="Canvas page the access token is scraped from",
    )
    p.add_argument(
        "--reauth",
        action="store_true",
        help="Re-acquire the access token when a placement is rejected with 401/403",
    )
    p.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconciliation cycle and exit",
    )
    p.add_argument(
        "--log-level",
        dest="log_level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    p.add_argument("--version", action="store_true", help="Print version and exit")
    return p.parse_args(argv)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def run_async(argv: list[str] | None = None) -> int:
    """Async entrypoint for programmatic usage/testing. Returns an exit code."""
    args = parse_args(argv)
    if args.version:
        print(f"pixelwarden {__version__}")
        return 0

    cfg = make_runtime_config(args=args)
    agent = Agent(cfg)
    try:
        await agent.run(max_cycles=1 if args.once else None)
    except CredentialError as e:
        logger.error("Couldn't obtain access token: %s", e)
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if args.version:
        print(f"pixelwarden {__version__}")
        return
    _configure_logging(args.log_level)
    try:
        code = asyncio.run(run_async(argv))
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
