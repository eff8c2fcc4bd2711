"""Decoded canvas frame.

A :class:`CanvasSnapshot` is a full, consistent read of the canvas at one
point in time. It is built once per cycle and never updated in place.
"""

from __future__ import annotations

import io

from PIL import Image

from pixelwarden.core.palette import Palette, pixel_to_color_key

__all__ = ["CanvasSnapshot"]


class CanvasSnapshot:
    """Pixel-addressable RGBA surface of fixed size.

    The source image is pasted at (0, 0) onto a fully transparent surface of
    ``size``; anything the image does not cover stays transparent and has no
    color key.
    """

    def __init__(self, image: Image.Image, *, size: tuple[int, int]) -> None:
        surface = Image.new("RGBA", size, (0, 0, 0, 0))
        src = image if image.mode == "RGBA" else image.convert("RGBA")
        surface.paste(src, (0, 0))
        self._surface = surface
        self._pixels = surface.load()

    @classmethod
    def from_bytes(cls, data: bytes, *, size: tuple[int, int]) -> "CanvasSnapshot":
        """Decode PNG (or any Pillow-readable) bytes. Raises on bad data."""
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return cls(img, size=size)

    @property
    def size(self) -> tuple[int, int]:
        return self._surface.size

    def contains(self, x: int, y: int) -> bool:
        w, h = self._surface.size
        return 0 <= x < w and 0 <= y < h

    def color_key_at(self, x: int, y: int) -> str | None:
        """``#RRGGBB`` at (x, y), or None for a transparent pixel."""
        r, g, b, a = self._pixels[x, y]
        if a == 0:
            return None
        return pixel_to_color_key(r, g, b)

    def color_index_at(self, x: int, y: int, palette: Palette) -> int | None:
        return palette.color_to_index(self.color_key_at(x, y))
