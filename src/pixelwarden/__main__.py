"""Console entrypoint for pixelwarden.

Delegates to :mod:`pixelwarden.cli` so that ``python -m pixelwarden`` and
the installed ``pixelwarden`` console script run the same code.
"""

from __future__ import annotations

from pixelwarden.cli import main as cli_main


def main() -> None:
    """Application entrypoint (delegates to :func:`pixelwarden.cli.main`)."""
    cli_main()


if __name__ == "__main__":
    main()
