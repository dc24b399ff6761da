"""In-memory fyToken, AMM pool and borrowing vault used for simulations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from engine.collaborators import BurnResult, MintResult, SeriesInfo
from engine.ledger import TokenLedger, _to_decimal

LOGGER = logging.getLogger("rollover.engine.simulated")


class CollaboratorError(Exception):
    """Raised when a simulated collaborator rejects a call."""


class SimulatedFYToken(TokenLedger):
    """Fixed-maturity token redeemable 1:1 for base at or after maturity."""

    def __init__(
        self,
        symbol: str,
        *,
        base: TokenLedger,
        maturity: int,
        address: str | None = None,
    ) -> None:
        super().__init__(symbol, address=address)
        self.base_ledger = base
        self.underlying = base.address
        self.maturity = maturity

    def redeem(self, holder: str, amount: Decimal | int | str, *, now: int) -> Decimal:
        value = _to_decimal(amount)
        if now < self.maturity:
            raise CollaboratorError(
                f"{self.symbol} matures at {self.maturity}, cannot redeem at {now}"
            )
        self.burn(holder, value)
        self.base_ledger.mint(holder, value)
        LOGGER.debug("%s redeemed %s for %s", holder, value, self.symbol)
        return value


class SimulatedPool(TokenLedger):
    """Two-asset pool that issues LP tokens pro rata to its cached reserves.

    Like the on-chain pools, it works on unaccounted balances: callers transfer
    tokens to ``address`` first, then call ``mint`` or ``burn``.
    """

    def __init__(
        self,
        symbol: str,
        *,
        base: TokenLedger,
        fy_token: SimulatedFYToken,
        address: str | None = None,
    ) -> None:
        super().__init__(symbol, address=address)
        self.base = base
        self.fy_token = fy_token
        self.maturity = fy_token.maturity
        self.base_cached = Decimal("0")
        self.fy_token_cached = Decimal("0")

    def get_reserves(self) -> tuple[Decimal, Decimal]:
        return (
            self.base.balance_of(self.address),
            self.fy_token.balance_of(self.address),
        )

    def sync(self) -> None:
        self.base_cached, self.fy_token_cached = self.get_reserves()

    def mint(self, to: str) -> MintResult:  # type: ignore[override]
        base_live, fy_live = self.get_reserves()
        base_in = base_live - self.base_cached
        fy_in = fy_live - self.fy_token_cached
        supply = self.total_supply
        if supply == 0:
            minted = base_in
        elif self.base_cached == 0 or self.fy_token_cached == 0:
            raise CollaboratorError(f"{self.symbol} has no reserves to price LP tokens")
        else:
            minted = min(
                base_in * supply / self.base_cached,
                fy_in * supply / self.fy_token_cached,
            )
        if minted <= 0:
            raise CollaboratorError(f"{self.symbol} received nothing to mint")
        super().mint(to, minted)
        self.sync()
        return MintResult(base_in=base_in, fy_token_in=fy_in, lp_minted=minted)

    def burn(self, to: str) -> BurnResult:  # type: ignore[override]
        lp_in = self.balance_of(self.address)
        supply = self.total_supply
        if lp_in <= 0:
            raise CollaboratorError(f"{self.symbol} received no LP tokens to burn")
        base_out = lp_in * self.base_cached / supply
        fy_out = lp_in * self.fy_token_cached / supply
        super().burn(self.address, lp_in)
        self.base.transfer(self.address, to, base_out)
        self.fy_token.transfer(self.address, to, fy_out)
        self.sync()
        return BurnResult(lp_burnt=lp_in, base_out=base_out, fy_token_out=fy_out)

    def snapshot(self) -> dict[str, Any]:
        state = super().snapshot()
        state["cached"] = (self.base_cached, self.fy_token_cached)
        return state

    def restore(self, state: dict[str, Any]) -> None:
        super().restore(state)
        self.base_cached, self.fy_token_cached = state["cached"]


@dataclass(frozen=True)
class VaultPosition:
    owner: str
    series_id: str
    collateral: Decimal = Decimal("0")
    debt: Decimal = Decimal("0")


class SimulatedVault:
    """Series registry and 1:1 collateralised fyToken lender."""

    def __init__(self, base: TokenLedger, *, address: str = "vault") -> None:
        self.base_ledger = base
        self.address = address
        self.fy_tokens: dict[str, SimulatedFYToken] = {}
        self._series: dict[str, SeriesInfo] = {}
        self.vaults: dict[str, VaultPosition] = {}
        self._counter = 0

    def add_series(self, series_id: str, maturity: int) -> SimulatedFYToken:
        if series_id in self._series:
            raise CollaboratorError(f"series {series_id} already registered")
        fy_token = SimulatedFYToken(
            f"fy{self.base_ledger.symbol}-{series_id}",
            base=self.base_ledger,
            maturity=maturity,
        )
        self.fy_tokens[series_id] = fy_token
        self._series[series_id] = SeriesInfo(
            series_id=series_id, fy_token=fy_token.address, maturity=maturity
        )
        return fy_token

    def series(self, series_id: str) -> SeriesInfo:
        try:
            return self._series[series_id]
        except KeyError as exc:
            raise CollaboratorError(f"unknown series {series_id}") from exc

    def open(self, series_id: str, owner: str) -> str:
        self.series(series_id)
        self._counter += 1
        vault_id = f"vault-{self._counter}"
        self.vaults[vault_id] = VaultPosition(owner=owner, series_id=series_id)
        return vault_id

    def borrow(
        self,
        vault_id: str,
        collateral: Decimal | int | str,
        amount: Decimal | int | str,
        *,
        to: str | None = None,
    ) -> None:
        position = self._position(vault_id)
        posted = _to_decimal(collateral)
        borrowed = _to_decimal(amount)
        if posted < borrowed:
            raise CollaboratorError(
                f"collateral {posted} does not cover a {borrowed} borrow"
            )
        self.base_ledger.transfer(position.owner, self.address, posted)
        self.fy_tokens[position.series_id].mint(to or position.owner, borrowed)
        self.vaults[vault_id] = replace(
            position,
            collateral=position.collateral + posted,
            debt=position.debt + borrowed,
        )

    def repay(self, vault_id: str, amount: Decimal | int | str) -> Decimal:
        position = self._position(vault_id)
        repaid = min(_to_decimal(amount), position.debt)
        if repaid <= 0:
            return position.debt
        self.fy_tokens[position.series_id].burn(position.owner, repaid)
        return self._settle(vault_id, position, repaid)

    def repay_with_base(
        self, vault_id: str, amount: Decimal | int | str, *, now: int
    ) -> Decimal:
        position = self._position(vault_id)
        if now < self.series(position.series_id).maturity:
            raise CollaboratorError("debt can only be settled in base after maturity")
        repaid = min(_to_decimal(amount), position.debt)
        if repaid <= 0:
            return position.debt
        self.base_ledger.transfer(position.owner, self.address, repaid)
        return self._settle(vault_id, position, repaid)

    def repay_with_collateral(
        self, vault_id: str, amount: Decimal | int | str, *, now: int
    ) -> Decimal:
        position = self._position(vault_id)
        if now < self.series(position.series_id).maturity:
            raise CollaboratorError("collateral can only settle debt after maturity")
        repaid = min(_to_decimal(amount), position.debt, position.collateral)
        if repaid <= 0:
            return position.debt
        remaining = position.debt - repaid
        self.vaults[vault_id] = replace(
            position,
            collateral=position.collateral - repaid,
            debt=remaining,
        )
        LOGGER.debug("%s settled %s of debt from collateral", vault_id, repaid)
        return remaining

    def debt(self, vault_id: str) -> Decimal:
        return self._position(vault_id).debt

    def close(self, vault_id: str) -> Decimal:
        position = self._position(vault_id)
        if position.debt > 0:
            raise CollaboratorError(f"{vault_id} still owes {position.debt}")
        if position.collateral > 0:
            self.base_ledger.transfer(self.address, position.owner, position.collateral)
        del self.vaults[vault_id]
        return position.collateral

    def snapshot(self) -> dict[str, Any]:
        return {
            "vaults": dict(self.vaults),
            "counter": self._counter,
            "fy_tokens": {
                series_id: fy_token.snapshot()
                for series_id, fy_token in self.fy_tokens.items()
            },
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.vaults = dict(state["vaults"])
        self._counter = state["counter"]
        for series_id, fy_state in state["fy_tokens"].items():
            self.fy_tokens[series_id].restore(fy_state)

    def _settle(self, vault_id: str, position: VaultPosition, repaid: Decimal) -> Decimal:
        if repaid == position.debt:
            released = position.collateral
        else:
            released = position.collateral * repaid / position.debt
        self.base_ledger.transfer(self.address, position.owner, released)
        remaining = position.debt - repaid
        self.vaults[vault_id] = replace(
            position,
            collateral=position.collateral - released,
            debt=remaining,
        )
        return remaining

    def _position(self, vault_id: str) -> VaultPosition:
        try:
            return self.vaults[vault_id]
        except KeyError as exc:
            raise CollaboratorError(f"unknown vault {vault_id}") from exc
