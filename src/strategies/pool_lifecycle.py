"""Rolls the strategy's liquidity from one fixed-maturity pool to the next."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from engine.collaborators import FYTokenLike, PoolLike, TokenLike, VaultLike
from strategies.book import StrategyBook
from strategies.errors import (
    IncorrectInput,
    MismatchedBase,
    MismatchedSeriesId,
    NextPoolNotSet,
    NoFundsToStart,
    OnlyAfterMaturity,
    PoolMatured,
    PoolNotSelected,
    PoolSelected,
    ReservesRatioChanged,
)
from utils.events import EventLog

LOGGER = logging.getLogger("rollover.strategy.pool_lifecycle")


class LifecyclePhase(str, Enum):
    IDLE = "idle"
    NEXT_SET = "next_set"
    ACTIVE = "active"
    MATURED = "matured"


@dataclass(frozen=True)
class PoolSlot:
    pool: PoolLike
    series_id: str
    maturity: int
    vault_id: str | None = None

    @property
    def fy_token(self) -> FYTokenLike:
        return self.pool.fy_token


@dataclass(frozen=True)
class StartResult:
    slot: PoolSlot
    base_to_pool: Decimal
    fy_token_borrowed: Decimal
    lp_minted: Decimal


@dataclass(frozen=True)
class EndResult:
    slot: PoolSlot
    lp_burnt: Decimal
    base_out: Decimal
    fy_token_out: Decimal
    fy_token_repaid: Decimal
    fy_token_redeemed: Decimal
    collateral_repaid: Decimal
    base_repaid: Decimal
    buffer: Decimal


class PoolLifecycle:
    """Idle -> NextSet -> Active -> Matured -> Idle.

    A next pool can be staged while a pool is active; ending the active pool
    then leaves the lifecycle in NextSet, ready to start again.
    """

    def __init__(
        self,
        book: StrategyBook,
        vault: VaultLike,
        shares: TokenLike,
        *,
        events: EventLog,
    ) -> None:
        self.book = book
        self.vault = vault
        self.shares = shares
        self.events = events
        self.phase = LifecyclePhase.IDLE
        self.current: PoolSlot | None = None
        self.next: PoolSlot | None = None
        self.queue: list[PoolSlot] = []

    def status(self, now: int) -> LifecyclePhase:
        if self.phase is LifecyclePhase.ACTIVE and self.current is not None:
            if now >= self.current.maturity:
                self.phase = LifecyclePhase.MATURED
        return self.phase

    def require_active(self, now: int) -> PoolSlot:
        phase = self.status(now)
        if phase is LifecyclePhase.MATURED:
            raise PoolMatured()
        if phase is not LifecyclePhase.ACTIVE or not self._has_vault():
            raise PoolNotSelected()
        return self.current

    def require_selected(self, now: int) -> PoolSlot:
        phase = self.status(now)
        selected = phase in (LifecyclePhase.ACTIVE, LifecyclePhase.MATURED)
        if not selected or not self._has_vault():
            raise PoolNotSelected()
        return self.current

    def set_next_pool(self, pool: PoolLike, series_id: str, *, now: int) -> PoolSlot:
        slot = self._validated_slot(pool, series_id)
        self.next = slot
        if self.status(now) is LifecyclePhase.IDLE:
            self.phase = LifecyclePhase.NEXT_SET
        self.events.emit(
            "NextPoolSet", timestamp=now, pool=pool.address, series_id=series_id
        )
        return slot

    def queue_pools(
        self, pools: Sequence[PoolLike], series_ids: Sequence[str], *, now: int
    ) -> list[PoolSlot]:
        if not pools or len(pools) != len(series_ids):
            raise IncorrectInput("Pools and series ids must be non-empty and aligned")
        slots = [
            self._validated_slot(pool, series_id)
            for pool, series_id in zip(pools, series_ids)
        ]
        self.queue = slots
        self.events.emit(
            "PoolsQueued",
            timestamp=now,
            pools=[slot.pool.address for slot in slots],
            series_ids=list(series_ids),
        )
        if self.next is None:
            self._stage_from_queue(now)
        return list(slots)

    def start_pool(
        self,
        min_ratio: Decimal,
        max_ratio: Decimal,
        *,
        now: int,
        caller: str,
    ) -> StartResult:
        phase = self.status(now)
        if phase in (LifecyclePhase.ACTIVE, LifecyclePhase.MATURED):
            raise PoolSelected()
        if self.next is None:
            raise NextPoolNotSet()
        base_balance = self.book.base.balance_of(self.book.address)
        if base_balance <= 0:
            raise NoFundsToStart()

        slot = self.next
        pool = slot.pool
        base_reserves, fy_reserves = pool.get_reserves()
        if fy_reserves <= 0:
            raise ReservesRatioChanged("Pool holds no fyToken")
        ratio = base_reserves / fy_reserves
        if not (min_ratio <= ratio <= max_ratio):
            raise ReservesRatioChanged(
                f"Reserves ratio {ratio} outside [{min_ratio}, {max_ratio}]"
            )

        # Split the buffer so that the borrowed fyToken and the remaining base
        # match the pool proportions; the borrow is collateralised 1:1 with base.
        base_to_pool = base_balance * base_reserves / (base_reserves + fy_reserves)
        fy_to_pool = base_balance - base_to_pool

        self.next = None
        self.current = slot
        self.phase = LifecyclePhase.ACTIVE
        self.book.buffer = Decimal("0")

        vault_id = self.vault.open(slot.series_id, self.book.address)
        self.current = replace(slot, vault_id=vault_id)
        self.vault.borrow(vault_id, fy_to_pool, fy_to_pool, to=pool.address)
        self.book.base.transfer(self.book.address, pool.address, base_to_pool)
        minted = pool.mint(self.book.address)
        self.book.cached = minted.lp_minted

        if self.shares.total_supply == 0:
            self.shares.mint(caller, base_balance)

        LOGGER.info(
            "Started %s (series %s): %s base + %s borrowed fyToken -> %s LP",
            pool.address,
            slot.series_id,
            base_to_pool,
            fy_to_pool,
            minted.lp_minted,
        )
        self.events.emit(
            "PoolStarted",
            timestamp=now,
            pool=pool.address,
            series_id=slot.series_id,
            vault_id=vault_id,
            base_to_pool=base_to_pool,
            fy_token_borrowed=fy_to_pool,
            lp_minted=minted.lp_minted,
        )
        return StartResult(
            slot=self.current,
            base_to_pool=base_to_pool,
            fy_token_borrowed=fy_to_pool,
            lp_minted=minted.lp_minted,
        )

    def end_pool(self, *, now: int) -> EndResult:
        phase = self.status(now)
        if phase in (LifecyclePhase.IDLE, LifecyclePhase.NEXT_SET):
            raise PoolNotSelected()
        if phase is LifecyclePhase.ACTIVE:
            raise OnlyAfterMaturity()
        slot = self.current
        if slot is None or slot.vault_id is None:
            raise PoolNotSelected()
        vault_id = slot.vault_id
        pool = slot.pool
        fy_token = slot.fy_token
        lp_held = pool.balance_of(self.book.address)

        self.current = None
        self.book.cached = Decimal("0")
        self.phase = (
            LifecyclePhase.NEXT_SET if self.next is not None else LifecyclePhase.IDLE
        )

        base_out = fy_out = Decimal("0")
        if lp_held > 0:
            pool.transfer(self.book.address, pool.address, lp_held)
            burnt = pool.burn(self.book.address)
            base_out, fy_out = burnt.base_out, burnt.fy_token_out

        # fyToken pays down the debt first since each unit also frees a unit
        # of collateral; any surplus is redeemed. A shortfall is settled from
        # the posted collateral, then from base.
        fy_held = fy_token.balance_of(self.book.address)
        debt = self.vault.debt(vault_id)
        fy_repaid = min(debt, fy_held)
        remaining = self.vault.repay(vault_id, fy_repaid) if fy_repaid > 0 else debt
        fy_redeemed = fy_held - fy_repaid
        if fy_redeemed > 0:
            fy_token.redeem(self.book.address, fy_redeemed, now=now)
        collateral_repaid = Decimal("0")
        if remaining > 0:
            left = self.vault.repay_with_collateral(vault_id, remaining, now=now)
            collateral_repaid = remaining - left
            remaining = left
        if remaining > 0:
            self.vault.repay_with_base(vault_id, remaining, now=now)
        self.vault.close(vault_id)

        self.book.buffer = self.book.base.balance_of(self.book.address)
        if self.next is None:
            self._stage_from_queue(now)

        LOGGER.info(
            "Ended %s (series %s): buffer now %s",
            pool.address,
            slot.series_id,
            self.book.buffer,
        )
        self.events.emit(
            "PoolEnded",
            timestamp=now,
            pool=pool.address,
            series_id=slot.series_id,
            vault_id=vault_id,
            lp_burnt=lp_held,
            base_out=base_out,
            fy_token_out=fy_out,
            fy_token_repaid=fy_repaid,
            fy_token_redeemed=fy_redeemed,
            collateral_repaid=collateral_repaid,
            base_repaid=remaining,
            buffer=self.book.buffer,
        )
        return EndResult(
            slot=slot,
            lp_burnt=lp_held,
            base_out=base_out,
            fy_token_out=fy_out,
            fy_token_repaid=fy_repaid,
            fy_token_redeemed=fy_redeemed,
            collateral_repaid=collateral_repaid,
            base_repaid=remaining,
            buffer=self.book.buffer,
        )

    def pools(self) -> list[PoolLike]:
        slots = [self.current, self.next, *self.queue]
        return [slot.pool for slot in slots if slot is not None]

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "current": self.current,
            "next": self.next,
            "queue": list(self.queue),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.phase = state["phase"]
        self.current = state["current"]
        self.next = state["next"]
        self.queue = list(state["queue"])

    def _validated_slot(self, pool: PoolLike, series_id: str) -> PoolSlot:
        if pool.base.address != self.book.base.address:
            raise MismatchedBase()
        series = self.vault.series(series_id)
        if series.fy_token != pool.fy_token.address:
            raise MismatchedSeriesId()
        return PoolSlot(pool=pool, series_id=series_id, maturity=pool.maturity)

    def _has_vault(self) -> bool:
        return self.current is not None and self.current.vault_id is not None

    def _stage_from_queue(self, now: int) -> None:
        if not self.queue:
            return
        slot = self.queue.pop(0)
        self.next = slot
        if self.phase is LifecyclePhase.IDLE:
            self.phase = LifecyclePhase.NEXT_SET
        self.events.emit(
            "NextPoolSet",
            timestamp=now,
            pool=slot.pool.address,
            series_id=slot.series_id,
        )
