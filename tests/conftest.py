from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest
from aiohttp import web
from PIL import Image, ImageColor

from pixelwarden.core.canvas import CanvasSnapshot
from pixelwarden.core.models import NoticeKind, Notification


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self) -> None:
        self.items: list[Notification] = []

    async def notify(
        self, kind: NoticeKind, text: str, *, duration_s: float | None = None
    ) -> None:
        self.items.append(Notification(kind=kind, text=text, duration_s=duration_s))

    def kinds(self) -> list[NoticeKind]:
        return [n.kind for n in self.items]


def build_image(
    pixels: Mapping[tuple[int, int], str],
    *,
    size: tuple[int, int] = (10, 10),
    fill: str = "#FFFFFF",
) -> Image.Image:
    img = Image.new("RGB", size, ImageColor.getrgb(fill))
    for (x, y), key in pixels.items():
        img.putpixel((x, y), ImageColor.getrgb(key))
    return img


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def load_fixture(fixtures_dir: Path) -> Callable[[str], Any]:
    def _load(name: str) -> Any:
        with (fixtures_dir / name).open("r", encoding="utf-8") as f:
            return json.load(f)

    return _load


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_snapshot() -> Callable[..., CanvasSnapshot]:
    """Build a snapshot from ``{(x, y): "#RRGGBB"}`` over a white background."""

    def _make(
        pixels: Mapping[tuple[int, int], str] | None = None,
        *,
        size: tuple[int, int] = (10, 10),
        fill: str = "#FFFFFF",
    ) -> CanvasSnapshot:
        img = build_image(pixels or {}, size=size, fill=fill)
        return CanvasSnapshot(img, size=size)

    return _make


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    def _make(
        pixels: Mapping[tuple[int, int], str] | None = None,
        *,
        size: tuple[int, int] = (10, 10),
        fill: str = "#FFFFFF",
    ) -> bytes:
        return png_bytes(build_image(pixels or {}, size=size, fill=fill))

    return _make


async def _start_app(app: web.Application) -> tuple[web.AppRunner, str]:
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    # aiohttp does not expose the bound port publicly
    server = site._server
    assert server is not None
    sockets = getattr(server, "sockets", None)
    assert sockets, "Server sockets not available"
    port = sockets[0].getsockname()[1]
    return runner, f"http://127.0.0.1:{port}"


@pytest.fixture
def start_app() -> Callable[[web.Application], Any]:
    """Start *app* on an ephemeral port; returns ``(runner, base_url)``.

    The caller is responsible for ``await runner.cleanup()``.
    """
    return _start_app
