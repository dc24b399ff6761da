"""Fungible token ledger with pre-transfer hooks."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable

LOGGER = logging.getLogger("rollover.engine.ledger")

TransferHook = Callable[[str | None, str | None, Decimal], None]


class LedgerError(Exception):
    """Base exception for ledger errors."""


class InsufficientBalance(LedgerError):
    """Raised when a holder tries to move more than it owns."""

    def __init__(self, symbol: str, holder: str, balance: Decimal, amount: Decimal):
        super().__init__(
            f"{holder} holds {balance} {symbol}, cannot move {amount} {symbol}"
        )
        self.holder = holder
        self.balance = balance
        self.amount = amount


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class TokenLedger:
    """Per-holder balances and total supply for one token.

    Hooks registered with ``add_transfer_hook`` run before any balance changes,
    so they observe the pre-mutation balances. ``src`` is ``None`` on mint and
    ``dst`` is ``None`` on burn.
    """

    def __init__(self, symbol: str, *, address: str | None = None) -> None:
        self.symbol = symbol
        self.address = address or symbol
        self._balances: dict[str, Decimal] = {}
        self._total_supply = Decimal("0")
        self._hooks: list[TransferHook] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address!r})"

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    def balance_of(self, holder: str) -> Decimal:
        return self._balances.get(holder, Decimal("0"))

    def holders(self) -> list[str]:
        return sorted(holder for holder, amount in self._balances.items() if amount > 0)

    def add_transfer_hook(self, hook: TransferHook) -> None:
        self._hooks.append(hook)

    def mint(self, to: str, amount: Decimal | int | str) -> None:
        value = self._checked_amount(amount)
        self._before_transfer(None, to, value)
        self._balances[to] = self.balance_of(to) + value
        self._total_supply += value
        LOGGER.debug("%s mint %s to %s", self.symbol, value, to)

    def burn(self, holder: str, amount: Decimal | int | str) -> None:
        value = self._checked_amount(amount)
        self._require_balance(holder, value)
        self._before_transfer(holder, None, value)
        self._balances[holder] = self.balance_of(holder) - value
        self._total_supply -= value
        LOGGER.debug("%s burn %s from %s", self.symbol, value, holder)

    def transfer(self, sender: str, to: str, amount: Decimal | int | str) -> None:
        value = self._checked_amount(amount)
        self._require_balance(sender, value)
        self._before_transfer(sender, to, value)
        self._balances[sender] = self.balance_of(sender) - value
        self._balances[to] = self.balance_of(to) + value
        LOGGER.debug("%s transfer %s from %s to %s", self.symbol, value, sender, to)

    def snapshot(self) -> dict[str, Any]:
        return {"balances": dict(self._balances), "total_supply": self._total_supply}

    def restore(self, state: dict[str, Any]) -> None:
        self._balances = dict(state["balances"])
        self._total_supply = state["total_supply"]

    def _before_transfer(self, src: str | None, dst: str | None, amount: Decimal) -> None:
        for hook in self._hooks:
            hook(src, dst, amount)

    def _require_balance(self, holder: str, amount: Decimal) -> None:
        balance = self.balance_of(holder)
        if balance < amount:
            raise InsufficientBalance(self.symbol, holder, balance, amount)

    @staticmethod
    def _checked_amount(amount: Decimal | int | str) -> Decimal:
        value = _to_decimal(amount)
        if value < 0:
            raise ValueError(f"amount must be non-negative, got: {value}")
        return value
