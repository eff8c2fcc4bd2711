from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, TypeAdapter


class Order(BaseModel):
    """
    A desired color at one canvas coordinate.
    Frozen: an order list read for a cycle is never mutated.
    """

    model_config = ConfigDict(frozen=True)

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    color_index: int = Field(..., ge=0, description="Palette index to enforce")

    @classmethod
    def from_triple(cls, t: Tuple[int, int, int]) -> "Order":
        return cls(x=t[0], y=t[1], color_index=t[2])

    def __repr__(self) -> str:  # pragma: no cover
        return f"Order({self.x}, {self.y} -> {self.color_index})"


# Tiers in priority order; each tier is an ordered run of orders.
OrderTiers = Tuple[Tuple[Order, ...], ...]

EMPTY_TIERS: OrderTiers = ()

_RawTiers = TypeAdapter(
    List[List[Tuple[NonNegativeInt, NonNegativeInt, NonNegativeInt]]]
)


def parse_order_tiers(data: Any) -> OrderTiers:
    """Validate a decoded orders document (``[[[x, y, color], ...], ...]``).

    Raises ``pydantic.ValidationError`` on any shape mismatch.
    """
    raw = _RawTiers.validate_python(data)
    return tuple(tuple(Order.from_triple(t) for t in tier) for tier in raw)


def total_orders(tiers: OrderTiers) -> int:
    return sum(len(tier) for tier in tiers)


class NoticeKind(str, Enum):
    INFO = "info"
    CREDENTIAL = "credential"
    ORDERS_UPDATED = "orders_updated"
    MAP_ERROR = "map_error"
    FIXING = "fixing"
    PLACED = "placed"
    RATE_LIMITED = "rate_limited"
    PARSE_ERROR = "parse_error"
    ALL_CORRECT = "all_correct"


class Notification(BaseModel):
    """Transient, human-readable status message."""

    kind: NoticeKind
    text: str
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_s: Optional[float] = Field(
        None, description="How long a UI should keep the message visible"
    )

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


__all__ = [
    "Order",
    "OrderTiers",
    "EMPTY_TIERS",
    "parse_order_tiers",
    "total_orders",
    "NoticeKind",
    "Notification",
]
