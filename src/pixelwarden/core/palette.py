"""Palette codec.

Maps canvas color keys (``#RRGGBB``, uppercase) to the compact palette
indices used by the remote protocol, and back. Lookups are exact; any color
not in the table decodes to ``None`` and therefore never equals a target
index.

Usage:

    pal = default_palette()
    key = pixel_to_color_key(255, 69, 0)   # "#FF4500"
    pal.color_to_index(key)                # 2
    pal.index_to_name(2)                   # "red"
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Mapping

from pixelwarden.settings.values import PALETTE_ENTRIES

__all__ = [
    "PaletteEntry",
    "Palette",
    "pixel_to_color_key",
    "color_key_to_rgb",
    "default_palette",
]


def pixel_to_color_key(r: int, g: int, b: int) -> str:
    """Encode an RGB sample as a fixed-width uppercase hex triplet."""
    for ch in (r, g, b):
        if not 0 <= ch <= 255:
            raise ValueError(f"channel out of range: {ch}")
    return f"#{r:02X}{g:02X}{b:02X}"


def color_key_to_rgb(key: str) -> tuple[int, int, int]:
    """Inverse of :func:`pixel_to_color_key`."""
    if len(key) != 7 or not key.startswith("#"):
        raise ValueError(f"not a #RRGGBB color key: {key!r}")
    value = int(key[1:], 16)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


@dataclass(frozen=True, slots=True)
class PaletteEntry:
    key: str
    index: int
    name: str | None = None


class Palette:
    """Bidirectional color key <-> palette index table."""

    def __init__(self, entries: Iterable[PaletteEntry]) -> None:
        self._by_key: dict[str, PaletteEntry] = {}
        self._by_index: dict[int, PaletteEntry] = {}
        for e in entries:
            key = e.key.upper()
            # Normalize through the codec so table keys always match samples
            key = pixel_to_color_key(*color_key_to_rgb(key))
            if key in self._by_key:
                raise ValueError(f"duplicate palette color {key}")
            if e.index in self._by_index:
                raise ValueError(f"duplicate palette index {e.index}")
            entry = PaletteEntry(key=key, index=e.index, name=e.name)
            self._by_key[key] = entry
            self._by_index[e.index] = entry

    @classmethod
    def from_mappings(cls, raw: Iterable[Mapping[str, Any]]) -> "Palette":
        return cls(
            PaletteEntry(key=str(m["key"]), index=int(m["index"]), name=m.get("name"))
            for m in raw
        )

    def __len__(self) -> int:
        return len(self._by_index)

    def __contains__(self, index: object) -> bool:
        return index in self._by_index

    @property
    def indices(self) -> list[int]:
        return sorted(self._by_index)

    def color_to_index(self, key: str | None) -> int | None:
        if key is None:
            return None
        entry = self._by_key.get(key.upper())
        return entry.index if entry is not None else None

    def index_to_color_key(self, index: int) -> str | None:
        entry = self._by_index.get(index)
        return entry.key if entry is not None else None

    def index_to_name(self, index: int | None) -> str | None:
        if index is None:
            return None
        entry = self._by_index.get(index)
        return entry.name if entry is not None else None

    def describe(self, index: int | None) -> str:
        """Human label for notifications; never raises."""
        name = self.index_to_name(index)
        if name:
            return name
        return "unknown" if index is None else f"color {index}"


@lru_cache(maxsize=1)
def default_palette() -> Palette:
    """Palette built from ``values.yml`` (cached)."""
    return Palette.from_mappings(PALETTE_ENTRIES)
