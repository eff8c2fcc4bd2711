"""Shared agent state.

One :class:`AgentContext` is handed to the order store, the engine and the
remote clients at construction. It only holds references to immutable values;
writers replace a reference, readers grab it once and keep using that value.
Within a single event loop a reference assignment is atomic, so no locking is
needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pixelwarden.core.models import EMPTY_TIERS, OrderTiers


@dataclass(slots=True)
class AgentContext:
    credential: str = ""
    orders: OrderTiers = field(default=EMPTY_TIERS)

    def replace_orders(self, tiers: OrderTiers) -> bool:
        """Swap in *tiers* if they differ structurally from the held ones."""
        if tiers == self.orders:
            return False
        self.orders = tiers
        return True

    def replace_credential(self, token: str) -> None:
        if not token:
            raise ValueError("credential must be non-empty")
        self.credential = token

    @property
    def authorization(self) -> str:
        return f"Bearer {self.credential}"
