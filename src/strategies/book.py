"""Balances the strategy has accounted for, shared by its engines."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from engine.collaborators import TokenLike


@dataclass
class StrategyBook:
    """Idle base (buffer) and LP tokens (cached) the strategy believes it holds.

    Both are kept in step with every mint, burn, invest and divest instead of
    being read back from the token contracts, so tokens sent in mid-operation
    cannot move share pricing.
    """

    address: str
    base: TokenLike
    buffer: Decimal = Decimal("0")
    cached: Decimal = Decimal("0")

    def unaccounted_base(self) -> Decimal:
        return self.base.balance_of(self.address) - self.buffer

    def snapshot(self) -> dict[str, Any]:
        return {"buffer": self.buffer, "cached": self.cached}

    def restore(self, state: dict[str, Any]) -> None:
        self.buffer = state["buffer"]
        self.cached = state["cached"]
