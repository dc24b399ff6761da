"""Leveraged liquidity provision against the active pool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from engine.collaborators import MintResult, VaultLike
from strategies.book import StrategyBook
from strategies.errors import (
    IncorrectInput,
    InsufficientBuffer,
    LimitsOutOfOrder,
    PoolDeviated,
)
from strategies.pool_lifecycle import PoolLifecycle, PoolSlot
from utils.events import EventLog

LOGGER = logging.getLogger("rollover.strategy.investing")

DEFAULT_POOL_DEVIATION_RATE = Decimal("0.001")


@dataclass(frozen=True)
class PoolCache:
    base_reserves: Decimal
    fy_token_reserves: Decimal
    timestamp: int


@dataclass(frozen=True)
class Limits:
    low: Decimal
    mid: Decimal
    high: Decimal


@dataclass(frozen=True)
class DivestResult:
    lp_burnt: Decimal
    base_out: Decimal
    fy_token_out: Decimal
    fy_token_repaid: Decimal
    buffer_added: Decimal


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class InvestmentController:
    """Borrow-and-invest and divest-and-repay on the current pool.

    ``pool_deviation_rate`` is the largest relative change per second of the
    pool's base/fyToken reserve ratio tolerated before investing is refused.
    """

    def __init__(
        self,
        book: StrategyBook,
        lifecycle: PoolLifecycle,
        vault: VaultLike,
        *,
        events: EventLog,
        limits: Limits | None = None,
        pool_deviation_rate: Decimal = DEFAULT_POOL_DEVIATION_RATE,
    ) -> None:
        self.book = book
        self.lifecycle = lifecycle
        self.vault = vault
        self.events = events
        self.limits = limits
        self.pool_deviation_rate = pool_deviation_rate
        self.pool_cache: PoolCache | None = None

    def set_limits(
        self,
        low: Decimal | int | str,
        mid: Decimal | int | str,
        high: Decimal | int | str,
        *,
        now: int,
    ) -> Limits:
        limits = Limits(low=_to_decimal(low), mid=_to_decimal(mid), high=_to_decimal(high))
        if limits.low < 0:
            raise IncorrectInput("Limits must be non-negative")
        if not (limits.low <= limits.mid <= limits.high):
            raise LimitsOutOfOrder(
                f"Expected low <= mid <= high, got {limits.low}, {limits.mid}, {limits.high}"
            )
        self.limits = limits
        self.events.emit(
            "LimitsSet", timestamp=now, low=limits.low, mid=limits.mid, high=limits.high
        )
        return limits

    def set_pool_deviation_rate(self, rate: Decimal | int | str, *, now: int) -> Decimal:
        value = _to_decimal(rate)
        if value < 0:
            raise IncorrectInput("Pool deviation rate must be non-negative")
        self.pool_deviation_rate = value
        self.events.emit("PoolDeviationRateSet", timestamp=now, rate=value)
        return value

    def sync_cache(self, slot: PoolSlot, *, now: int) -> PoolCache:
        base_reserves, fy_reserves = slot.pool.get_reserves()
        self.pool_cache = PoolCache(base_reserves, fy_reserves, now)
        return self.pool_cache

    def pool_deviated(self, *, now: int) -> bool:
        """Compare live reserves to the cache, then refresh the cache."""
        slot = self.lifecycle.require_selected(now)
        cache = self.pool_cache
        base_reserves, fy_reserves = slot.pool.get_reserves()
        deviated = False
        if cache is not None and cache.base_reserves > 0 and cache.fy_token_reserves > 0:
            if fy_reserves <= 0:
                deviated = True
            else:
                cached_ratio = cache.base_reserves / cache.fy_token_reserves
                live_ratio = base_reserves / fy_reserves
                drift = abs(live_ratio - cached_ratio) / cached_ratio
                # Changes within one second are judged as a full second.
                elapsed = max(now - cache.timestamp, 1)
                deviated = drift / elapsed > self.pool_deviation_rate
        self.pool_cache = PoolCache(base_reserves, fy_reserves, now)
        if deviated:
            LOGGER.warning(
                "Pool %s deviated: reserves %s/%s at %s",
                slot.pool.address,
                base_reserves,
                fy_reserves,
                now,
            )
        return deviated

    def borrow_and_invest(self, amount: Decimal | int | str, *, now: int) -> MintResult:
        fy_amount = _to_decimal(amount)
        if fy_amount <= 0:
            raise IncorrectInput("Investment amount must be positive")
        slot = self.lifecycle.require_active(now)
        if self.pool_deviated(now=now):
            raise PoolDeviated()
        pool = slot.pool
        base_reserves, fy_reserves = pool.get_reserves()
        base_to_pool = fy_amount * base_reserves / fy_reserves
        base_needed = fy_amount + base_to_pool
        if base_needed > self.book.buffer:
            raise InsufficientBuffer(
                f"Investing {fy_amount} fyToken needs {base_needed} base, "
                f"buffer holds {self.book.buffer}"
            )

        self.book.buffer -= base_needed
        self.vault.borrow(slot.vault_id, fy_amount, fy_amount, to=pool.address)
        self.book.base.transfer(self.book.address, pool.address, base_to_pool)
        minted = pool.mint(self.book.address)
        self.book.cached += minted.lp_minted
        self.sync_cache(slot, now=now)

        self.events.emit(
            "Invested",
            timestamp=now,
            pool=pool.address,
            fy_token_borrowed=fy_amount,
            base_to_pool=base_to_pool,
            lp_minted=minted.lp_minted,
        )
        return minted

    def divest_and_repay(self, lp_amount: Decimal | int | str, *, now: int) -> DivestResult:
        lp = _to_decimal(lp_amount)
        if lp <= 0:
            raise IncorrectInput("Divestment amount must be positive")
        slot = self.lifecycle.require_selected(now)
        if lp > self.book.cached:
            raise IncorrectInput(
                f"Cannot divest {lp} LP tokens, strategy holds {self.book.cached}"
            )
        pool = slot.pool
        base_before = self.book.base.balance_of(self.book.address)

        self.book.cached -= lp
        pool.transfer(self.book.address, pool.address, lp)
        burnt = pool.burn(self.book.address)

        fy_held = slot.fy_token.balance_of(self.book.address)
        fy_repaid = min(fy_held, self.vault.debt(slot.vault_id))
        if fy_repaid > 0:
            self.vault.repay(slot.vault_id, fy_repaid)
        buffer_added = self.book.base.balance_of(self.book.address) - base_before
        self.book.buffer += buffer_added
        self.sync_cache(slot, now=now)

        self.events.emit(
            "Divested",
            timestamp=now,
            pool=pool.address,
            lp_burnt=lp,
            base_out=burnt.base_out,
            fy_token_out=burnt.fy_token_out,
            fy_token_repaid=fy_repaid,
            buffer_added=buffer_added,
        )
        return DivestResult(
            lp_burnt=lp,
            base_out=burnt.base_out,
            fy_token_out=burnt.fy_token_out,
            fy_token_repaid=fy_repaid,
            buffer_added=buffer_added,
        )

    def rebalance_buffer(self, *, now: int) -> str | None:
        """Invest down to ``mid`` above ``high``, divest up to ``mid`` below ``low``."""
        if self.limits is None:
            raise IncorrectInput("Limits not set")
        slot = self.lifecycle.require_selected(now)
        buffer = self.book.buffer
        base_reserves, fy_reserves = slot.pool.get_reserves()
        if buffer > self.limits.high:
            spend = buffer - self.limits.mid
            fy_amount = spend * fy_reserves / (base_reserves + fy_reserves)
            self.borrow_and_invest(fy_amount, now=now)
            return "invest"
        if buffer < self.limits.low and self.book.cached > 0:
            lp_value = (base_reserves + fy_reserves) / slot.pool.total_supply
            lp_amount = min((self.limits.mid - buffer) / lp_value, self.book.cached)
            self.divest_and_repay(lp_amount, now=now)
            return "divest"
        return None

    def snapshot(self) -> dict[str, Any]:
        return {
            "limits": self.limits,
            "pool_deviation_rate": self.pool_deviation_rate,
            "pool_cache": self.pool_cache,
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.limits = state["limits"]
        self.pool_deviation_rate = state["pool_deviation_rate"]
        self.pool_cache = state["pool_cache"]
