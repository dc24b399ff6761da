"""Strategy valuation and proportional share issuance."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from engine.ledger import TokenLedger
from strategies.book import StrategyBook
from strategies.errors import (
    AlreadyInitialized,
    IncorrectInput,
    NoFundsToStart,
    PoolSelected,
)
from strategies.pool_lifecycle import PoolLifecycle
from utils.events import EventLog

LOGGER = logging.getLogger("rollover.strategy.accounting")

ZERO = Decimal("0")


@dataclass(frozen=True)
class BurnOutcome:
    shares_burnt: Decimal
    base_out: Decimal
    lp_out: Decimal
    fy_token_out: Decimal


class ValueAccounting:
    """Prices strategy shares against buffer, idle fyToken and LP holdings.

    Deposits and redemptions follow the transfer-then-call pattern: assets (or
    shares, for burning) are sent to the strategy address first and the call
    accounts for whatever arrived beyond the cached balances.
    """

    def __init__(
        self,
        book: StrategyBook,
        lifecycle: PoolLifecycle,
        shares: TokenLedger,
        *,
        events: EventLog,
    ) -> None:
        self.book = book
        self.lifecycle = lifecycle
        self.shares = shares
        self.events = events

    def pool_share_value(self) -> Decimal:
        """Base value of one LP token of the current pool, fyToken counted at par."""
        slot = self.lifecycle.current
        if slot is None:
            return ZERO
        supply = slot.pool.total_supply
        if supply <= 0:
            return ZERO
        base_reserves, fy_reserves = slot.pool.get_reserves()
        return (base_reserves + fy_reserves) / supply

    def idle_fy_token(self) -> Decimal:
        slot = self.lifecycle.current
        if slot is None:
            return ZERO
        return slot.fy_token.balance_of(self.book.address)

    def strategy_value(self) -> Decimal:
        return (
            self.book.buffer
            + self.idle_fy_token()
            + self.book.cached * self.pool_share_value()
        )

    def init(self, to: str, *, now: int) -> Decimal:
        if self.shares.total_supply > 0:
            raise AlreadyInitialized()
        base_balance = self.book.base.balance_of(self.book.address)
        if base_balance <= 0:
            raise NoFundsToStart()
        self.book.buffer = base_balance
        self.shares.mint(to, base_balance)
        self.events.emit("Initialized", timestamp=now, to=to, minted=base_balance)
        return base_balance

    def mint(self, to: str, *, now: int) -> Decimal:
        deposit_base = self.book.unaccounted_base()
        deposit_lp = ZERO
        slot = self.lifecycle.current
        if slot is not None:
            deposit_lp = slot.pool.balance_of(self.book.address) - self.book.cached
        deposit_value = deposit_base + deposit_lp * self.pool_share_value()
        if deposit_value <= 0:
            raise IncorrectInput("Nothing deposited to mint against")

        value_before = self.strategy_value()
        supply = self.shares.total_supply
        if supply == 0:
            minted = deposit_value
        elif value_before <= 0:
            raise IncorrectInput("Strategy has outstanding shares but no value")
        else:
            minted = deposit_value * supply / value_before

        self.book.buffer += deposit_base
        self.book.cached += deposit_lp
        self.shares.mint(to, minted)

        LOGGER.debug(
            "Minted %s shares to %s for %s base and %s LP (value before %s)",
            minted,
            to,
            deposit_base,
            deposit_lp,
            value_before,
        )
        self.events.emit(
            "Minted",
            timestamp=now,
            to=to,
            base_in=deposit_base,
            lp_in=deposit_lp,
            minted=minted,
        )
        return minted

    def burn(self, to: str, *, now: int) -> BurnOutcome:
        burnt, supply = self._shares_to_burn()
        base_out = self._pro_rata(self.book.buffer, burnt, supply)
        lp_out = self._pro_rata(self.book.cached, burnt, supply)
        fy_out = self._pro_rata(self.idle_fy_token(), burnt, supply)

        self.book.buffer -= base_out
        self.book.cached -= lp_out
        self.shares.burn(self.book.address, burnt)
        if base_out > 0:
            self.book.base.transfer(self.book.address, to, base_out)
        slot = self.lifecycle.current
        if slot is not None:
            if lp_out > 0:
                slot.pool.transfer(self.book.address, to, lp_out)
            if fy_out > 0:
                slot.fy_token.transfer(self.book.address, to, fy_out)

        self.events.emit(
            "Burnt",
            timestamp=now,
            to=to,
            burnt=burnt,
            base_out=base_out,
            lp_out=lp_out,
            fy_token_out=fy_out,
        )
        return BurnOutcome(
            shares_burnt=burnt, base_out=base_out, lp_out=lp_out, fy_token_out=fy_out
        )

    def burn_for_base(self, to: str, *, now: int) -> BurnOutcome:
        if self.lifecycle.current is not None:
            raise PoolSelected()
        burnt, supply = self._shares_to_burn()
        base_out = self._pro_rata(self.book.buffer, burnt, supply)

        self.book.buffer -= base_out
        self.shares.burn(self.book.address, burnt)
        self.book.base.transfer(self.book.address, to, base_out)

        self.events.emit(
            "Burnt", timestamp=now, to=to, burnt=burnt, base_out=base_out, lp_out=ZERO
        )
        return BurnOutcome(
            shares_burnt=burnt, base_out=base_out, lp_out=ZERO, fy_token_out=ZERO
        )

    @staticmethod
    def _pro_rata(amount: Decimal, burnt: Decimal, supply: Decimal) -> Decimal:
        if burnt == supply:
            return amount
        return amount * burnt / supply

    def _shares_to_burn(self) -> tuple[Decimal, Decimal]:
        burnt = self.shares.balance_of(self.book.address)
        if burnt <= 0:
            raise IncorrectInput("No strategy shares sent in to burn")
        return burnt, self.shares.total_supply

