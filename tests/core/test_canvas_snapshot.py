from __future__ import annotations

from typing import Callable

import pytest
from PIL import Image

from pixelwarden.core.canvas import CanvasSnapshot
from pixelwarden.core.palette import default_palette


def test_color_lookup(make_snapshot: Callable[..., CanvasSnapshot]) -> None:
    snap = make_snapshot({(2, 3): "#FF4500", (0, 0): "#000000"})
    pal = default_palette()
    assert snap.size == (10, 10)
    assert snap.color_key_at(2, 3) == "#FF4500"
    assert snap.color_index_at(2, 3, pal) == 2
    assert snap.color_index_at(0, 0, pal) == 27
    assert snap.color_index_at(5, 5, pal) == 31


def test_off_palette_color_is_unknown(
    make_snapshot: Callable[..., CanvasSnapshot],
) -> None:
    snap = make_snapshot({(1, 1): "#FF4501"})
    assert snap.color_key_at(1, 1) == "#FF4501"
    assert snap.color_index_at(1, 1, default_palette()) is None


def test_smaller_image_leaves_transparent_area() -> None:
    img = Image.new("RGB", (4, 4), (255, 255, 255))
    snap = CanvasSnapshot(img, size=(8, 8))
    assert snap.size == (8, 8)
    assert snap.color_key_at(3, 3) == "#FFFFFF"
    # Uncovered pixels have no color, not black
    assert snap.color_key_at(6, 6) is None
    assert snap.color_index_at(6, 6, default_palette()) is None


def test_contains() -> None:
    snap = CanvasSnapshot(Image.new("RGB", (5, 5)), size=(5, 5))
    assert snap.contains(0, 0)
    assert snap.contains(4, 4)
    assert not snap.contains(5, 0)
    assert not snap.contains(0, 5)


def test_from_bytes(make_png: Callable[..., bytes]) -> None:
    data = make_png({(7, 1): "#3690EA"}, size=(10, 10))
    snap = CanvasSnapshot.from_bytes(data, size=(10, 10))
    assert snap.color_index_at(7, 1, default_palette()) == 13


def test_from_bytes_rejects_garbage() -> None:
    with pytest.raises(OSError):
        CanvasSnapshot.from_bytes(b"not an image", size=(10, 10))
