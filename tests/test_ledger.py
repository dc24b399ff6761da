"""Tests for the token ledger."""

from __future__ import annotations

from decimal import Decimal

import pytest

from engine.ledger import InsufficientBalance, LedgerError, TokenLedger


def test_mint_transfer_burn_track_supply() -> None:
    ledger = TokenLedger("USDC")
    ledger.mint("alice", "100")
    ledger.transfer("alice", "bob", Decimal("40"))
    ledger.burn("bob", 10)

    assert ledger.balance_of("alice") == Decimal("60")
    assert ledger.balance_of("bob") == Decimal("30")
    assert ledger.total_supply == Decimal("90")
    assert ledger.holders() == ["alice", "bob"]


def test_overdraft_leaves_balances_untouched() -> None:
    ledger = TokenLedger("USDC")
    ledger.mint("alice", 5)

    with pytest.raises(InsufficientBalance) as excinfo:
        ledger.transfer("alice", "bob", 6)

    assert isinstance(excinfo.value, LedgerError)
    assert ledger.balance_of("alice") == Decimal("5")
    assert ledger.balance_of("bob") == Decimal("0")


def test_negative_amount_is_rejected() -> None:
    ledger = TokenLedger("USDC")
    with pytest.raises(ValueError):
        ledger.mint("alice", "-1")


def test_hooks_observe_pre_transfer_balances() -> None:
    ledger = TokenLedger("STR")
    seen: list[tuple] = []

    def hook(src, dst, amount) -> None:
        seen.append(
            (
                src,
                dst,
                amount,
                ledger.balance_of(src) if src else None,
                ledger.balance_of(dst) if dst else None,
            )
        )

    ledger.add_transfer_hook(hook)
    ledger.mint("alice", 10)
    ledger.transfer("alice", "bob", 4)
    ledger.burn("bob", 1)

    assert seen == [
        (None, "alice", Decimal("10"), None, Decimal("0")),
        ("alice", "bob", Decimal("4"), Decimal("10"), Decimal("0")),
        ("bob", None, Decimal("1"), Decimal("4"), None),
    ]


def test_hook_not_called_when_transfer_fails() -> None:
    ledger = TokenLedger("STR")
    calls: list[object] = []
    ledger.add_transfer_hook(lambda *args: calls.append(args))

    with pytest.raises(InsufficientBalance):
        ledger.burn("alice", 1)

    assert calls == []


def test_snapshot_restore() -> None:
    ledger = TokenLedger("USDC", address="usdc")
    ledger.mint("alice", 10)
    state = ledger.snapshot()
    ledger.transfer("alice", "bob", 3)
    ledger.mint("carol", 7)

    ledger.restore(state)

    assert ledger.address == "usdc"
    assert ledger.balance_of("alice") == Decimal("10")
    assert ledger.balance_of("bob") == Decimal("0")
    assert ledger.total_supply == Decimal("10")
