"""Pool-rotation strategy with reward streaming for its share holders."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Hashable, Sequence

from engine.clock import SystemClock
from engine.collaborators import MintResult, PoolLike, TokenLike, VaultLike
from engine.ledger import TokenLedger
from engine.state import StrategySnapshot
from engine.transaction import atomic
from strategies.accounting import BurnOutcome, ValueAccounting
from strategies.book import StrategyBook
from strategies.investing import (
    DEFAULT_POOL_DEVIATION_RATE,
    DivestResult,
    InvestmentController,
    Limits,
    PoolCache,
)
from strategies.pool_lifecycle import (
    EndResult,
    LifecyclePhase,
    PoolLifecycle,
    PoolSlot,
    StartResult,
)
from strategies.rewards import (
    RewardAccumulator,
    RewardsPerToken,
    RewardsSchedule,
    UserRewards,
)
from utils.events import EventLog

LOGGER = logging.getLogger("rollover.strategy")


@dataclass(frozen=True)
class StrategyConfig:
    name: str = "Strategy Token"
    symbol: str = "STR"
    address: str = "strategy"
    limits: Limits | None = None
    pool_deviation_rate: Decimal = DEFAULT_POOL_DEVIATION_RATE


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class Strategy:
    """Entry points of the strategy.

    Every mutating call reads the clock once, runs against the engines, and is
    rolled back as a whole if any step raises. Authorisation is left to the
    caller.
    """

    def __init__(
        self,
        base: TokenLike,
        vault: VaultLike,
        *,
        config: StrategyConfig | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.config = config or StrategyConfig()
        self.address = self.config.address
        self.base = base
        self.vault = vault
        self.clock = clock or SystemClock()
        self.events = EventLog()
        self.shares = TokenLedger(self.config.symbol, address=self.address)
        self.book = StrategyBook(address=self.address, base=base)
        self.rewards_engine = RewardAccumulator(
            self.shares, address=self.address, clock=self.clock, events=self.events
        )
        self.shares.add_transfer_hook(self.rewards_engine.on_transfer)
        self.lifecycle = PoolLifecycle(self.book, vault, self.shares, events=self.events)
        self.investing = InvestmentController(
            self.book,
            self.lifecycle,
            vault,
            events=self.events,
            limits=self.config.limits,
            pool_deviation_rate=self.config.pool_deviation_rate,
        )
        self.accounting = ValueAccounting(
            self.book, self.lifecycle, self.shares, events=self.events
        )
        LOGGER.debug(
            "Created %s (%s) at %s on base %s",
            self.config.name,
            self.config.symbol,
            self.address,
            base.address,
        )

    # Rewards

    def set_rewards(
        self,
        token: TokenLike,
        start: int,
        end: int,
        rate: Decimal | int | str,
        available: Decimal | int | str | None = None,
        *,
        scheme_id: Hashable | None = None,
    ) -> RewardsSchedule:
        now = self.clock()
        with self._transaction(token):
            return self.rewards_engine.set_rewards(
                token, start, end, rate, available, now=now, scheme_id=scheme_id
            )

    def claim(self, holder: str, to: str | None = None) -> Decimal:
        now = self.clock()
        with self._transaction():
            return self.rewards_engine.claim(holder, to or holder, now=now)

    def update_accumulator(self) -> None:
        now = self.clock()
        with self._transaction():
            self.rewards_engine.update_accumulator(now)

    def rewards(self, holder: str, scheme_id: Hashable | None = None) -> UserRewards:
        return self.rewards_engine.rewards(holder, scheme_id)

    def rewards_per_token(self, scheme_id: Hashable | None = None) -> RewardsPerToken:
        return self.rewards_engine.rewards_per_token(scheme_id)

    def claimable_period(self, scheme_id: Hashable | None = None) -> int:
        return self.rewards_engine.claimable_period(now=self.clock(), scheme_id=scheme_id)

    def claimable_amount(self, holder: str, scheme_id: Hashable | None = None) -> Decimal:
        return self.rewards_engine.claimable_amount(
            holder, now=self.clock(), scheme_id=scheme_id
        )

    # Pool lifecycle

    def set_next_pool(self, pool: PoolLike, series_id: str) -> PoolSlot:
        now = self.clock()
        with self._transaction():
            return self.lifecycle.set_next_pool(pool, series_id, now=now)

    def queue_pools(
        self, pools: Sequence[PoolLike], series_ids: Sequence[str]
    ) -> list[PoolSlot]:
        now = self.clock()
        with self._transaction():
            return self.lifecycle.queue_pools(pools, series_ids, now=now)

    def start_pool(
        self,
        min_ratio: Decimal | int | str = Decimal("0"),
        max_ratio: Decimal | int | str | None = None,
        *,
        caller: str = "owner",
    ) -> StartResult:
        now = self.clock()
        upper = _to_decimal(max_ratio) if max_ratio is not None else Decimal("Infinity")
        with self._transaction():
            result = self.lifecycle.start_pool(
                _to_decimal(min_ratio), upper, now=now, caller=caller
            )
            self.investing.sync_cache(result.slot, now=now)
            return result

    def end_pool(self) -> EndResult:
        now = self.clock()
        with self._transaction():
            result = self.lifecycle.end_pool(now=now)
            self.investing.pool_cache = None
            return result

    def phase(self) -> LifecyclePhase:
        return self.lifecycle.status(self.clock())

    def pool(self) -> PoolLike | None:
        slot = self.lifecycle.current
        return slot.pool if slot is not None else None

    def fy_token(self) -> TokenLike | None:
        slot = self.lifecycle.current
        return slot.fy_token if slot is not None else None

    def series_id(self) -> str | None:
        slot = self.lifecycle.current
        return slot.series_id if slot is not None else None

    def vault_id(self) -> str | None:
        slot = self.lifecycle.current
        return slot.vault_id if slot is not None else None

    def next_pool(self) -> PoolLike | None:
        slot = self.lifecycle.next
        return slot.pool if slot is not None else None

    def next_series_id(self) -> str | None:
        slot = self.lifecycle.next
        return slot.series_id if slot is not None else None

    def cached(self) -> Decimal:
        return self.book.cached

    def buffer(self) -> Decimal:
        return self.book.buffer

    # Investing

    def pool_deviated(self) -> bool:
        now = self.clock()
        with self._transaction():
            return self.investing.pool_deviated(now=now)

    def borrow_and_invest(self, amount: Decimal | int | str) -> MintResult:
        now = self.clock()
        with self._transaction():
            return self.investing.borrow_and_invest(amount, now=now)

    def divest_and_repay(self, lp_amount: Decimal | int | str) -> DivestResult:
        now = self.clock()
        with self._transaction():
            return self.investing.divest_and_repay(lp_amount, now=now)

    def rebalance_buffer(self) -> str | None:
        now = self.clock()
        with self._transaction():
            return self.investing.rebalance_buffer(now=now)

    def set_limits(
        self,
        low: Decimal | int | str,
        mid: Decimal | int | str,
        high: Decimal | int | str,
    ) -> Limits:
        now = self.clock()
        with self._transaction():
            return self.investing.set_limits(low, mid, high, now=now)

    def set_pool_deviation_rate(self, rate: Decimal | int | str) -> Decimal:
        now = self.clock()
        with self._transaction():
            return self.investing.set_pool_deviation_rate(rate, now=now)

    def pool_cache(self) -> PoolCache | None:
        return self.investing.pool_cache

    # Shares

    def strategy_value(self) -> Decimal:
        return self.accounting.strategy_value()

    def init(self, to: str) -> Decimal:
        now = self.clock()
        with self._transaction():
            return self.accounting.init(to, now=now)

    def mint(self, to: str) -> Decimal:
        now = self.clock()
        with self._transaction():
            return self.accounting.mint(to, now=now)

    def burn(self, to: str) -> BurnOutcome:
        now = self.clock()
        with self._transaction():
            return self.accounting.burn(to, now=now)

    def burn_for_base(self, to: str) -> BurnOutcome:
        now = self.clock()
        with self._transaction():
            return self.accounting.burn_for_base(to, now=now)

    def balance_of(self, holder: str) -> Decimal:
        return self.shares.balance_of(holder)

    def total_supply(self) -> Decimal:
        return self.shares.total_supply

    def transfer(self, sender: str, to: str, amount: Decimal | int | str) -> None:
        with self._transaction():
            self.shares.transfer(sender, to, amount)

    def describe_state(self) -> StrategySnapshot:
        now = self.clock()
        current, upcoming = self.lifecycle.current, self.lifecycle.next
        limits = self.investing.limits
        cache = self.investing.pool_cache
        return StrategySnapshot(
            timestamp=now,
            phase=self.lifecycle.status(now).value,
            pool=current.pool.address if current else None,
            series_id=current.series_id if current else None,
            vault_id=current.vault_id if current else None,
            next_pool=upcoming.pool.address if upcoming else None,
            next_series_id=upcoming.series_id if upcoming else None,
            buffer=str(self.book.buffer),
            cached=str(self.book.cached),
            total_supply=str(self.shares.total_supply),
            strategy_value=str(self.strategy_value()),
            limits=(
                {"low": str(limits.low), "mid": str(limits.mid), "high": str(limits.high)}
                if limits
                else None
            ),
            pool_deviation_rate=str(self.investing.pool_deviation_rate),
            pool_cache=(
                {
                    "base_reserves": str(cache.base_reserves),
                    "fy_token_reserves": str(cache.fy_token_reserves),
                    "timestamp": cache.timestamp,
                }
                if cache
                else None
            ),
            holders={
                holder: str(self.shares.balance_of(holder))
                for holder in self.shares.holders()
            },
            events=self.events.to_payload(),
        )

    def _transaction(self, *extra: object) -> AbstractContextManager[None]:
        reward_tokens = [scheme.token for scheme in self.rewards_engine.schemes.values()]
        return atomic(
            [
                self.book,
                self.rewards_engine,
                self.lifecycle,
                self.investing,
                self.events,
                self.shares,
                self.base,
                self.vault,
                *self.lifecycle.pools(),
                *reward_tokens,
                *extra,
            ]
        )
