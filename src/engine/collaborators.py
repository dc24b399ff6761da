"""Interfaces of the external contracts the strategy talks to."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


@dataclass(frozen=True)
class SeriesInfo:
    series_id: str
    fy_token: str
    maturity: int


@dataclass(frozen=True)
class BurnResult:
    lp_burnt: Decimal
    base_out: Decimal
    fy_token_out: Decimal


@dataclass(frozen=True)
class MintResult:
    base_in: Decimal
    fy_token_in: Decimal
    lp_minted: Decimal


class TokenLike(Protocol):
    symbol: str
    address: str

    @property
    def total_supply(self) -> Decimal:
        """Return the outstanding supply."""

    def balance_of(self, holder: str) -> Decimal:
        """Return the balance held by ``holder``."""

    def transfer(self, sender: str, to: str, amount: Decimal) -> None:
        """Move ``amount`` from ``sender`` to ``to``."""


class FYTokenLike(TokenLike, Protocol):
    maturity: int
    underlying: str

    def redeem(self, holder: str, amount: Decimal, *, now: int) -> Decimal:
        """Burn matured fyToken held by ``holder`` and pay out base."""


class PoolLike(TokenLike, Protocol):
    """AMM pool that is also the ledger of its own LP tokens."""

    base: TokenLike
    fy_token: FYTokenLike
    maturity: int

    def get_reserves(self) -> tuple[Decimal, Decimal]:
        """Return live (base, fyToken) reserves."""

    def mint(self, to: str) -> MintResult:
        """Mint LP tokens to ``to`` for the tokens transferred in since the last sync."""

    def burn(self, to: str) -> BurnResult:
        """Burn the LP tokens transferred to the pool and pay both assets to ``to``."""


class VaultLike(Protocol):
    """Collateralised fyToken borrowing, keyed by series."""

    def series(self, series_id: str) -> SeriesInfo:
        """Return the series registered under ``series_id``."""

    def open(self, series_id: str, owner: str) -> str:
        """Open an empty vault for ``owner`` and return its id."""

    def borrow(
        self,
        vault_id: str,
        collateral: Decimal,
        amount: Decimal,
        *,
        to: str | None = None,
    ) -> None:
        """Post base collateral from the owner and mint ``amount`` fyToken to ``to``."""

    def repay(self, vault_id: str, amount: Decimal) -> Decimal:
        """Burn fyToken from the owner against the debt, return remaining debt."""

    def repay_with_base(self, vault_id: str, amount: Decimal, *, now: int) -> Decimal:
        """Settle debt with base from the owner, return remaining debt."""

    def repay_with_collateral(
        self, vault_id: str, amount: Decimal, *, now: int
    ) -> Decimal:
        """Settle matured debt out of posted collateral, return remaining debt."""

    def debt(self, vault_id: str) -> Decimal:
        """Return the outstanding debt of a vault."""

    def close(self, vault_id: str) -> Decimal:
        """Close a debt-free vault, returning its collateral to the owner."""
