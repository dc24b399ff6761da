"""Tests for the simulated fyToken, pool, vault and clock."""

from __future__ import annotations

from decimal import Decimal

import pytest

from engine.clock import ManualClock
from engine.ledger import TokenLedger
from engine.simulated import CollaboratorError, SimulatedPool, SimulatedVault

MATURITY = 5_000


def _vault():
    base = TokenLedger("USDC")
    vault = SimulatedVault(base)
    fy_token = vault.add_series("2406", MATURITY)
    return base, vault, fy_token


def test_manual_clock_only_moves_forward() -> None:
    clock = ManualClock(100)
    assert clock.advance(5) == 105
    assert clock.set(200) == 200
    with pytest.raises(ValueError):
        clock.set(199)
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_fy_token_redeems_only_after_maturity() -> None:
    base, vault, fy_token = _vault()
    fy_token.mint("alice", 10)

    with pytest.raises(CollaboratorError):
        fy_token.redeem("alice", 4, now=MATURITY - 1)

    fy_token.redeem("alice", 4, now=MATURITY)
    assert fy_token.balance_of("alice") == Decimal("6")
    assert base.balance_of("alice") == Decimal("4")
    assert fy_token.underlying == base.address


def test_pool_mints_and_burns_pro_rata() -> None:
    base, vault, fy_token = _vault()
    pool = SimulatedPool("LP", base=base, fy_token=fy_token, address="pool")
    base.mint(pool.address, 100)
    fy_token.mint(pool.address, 120)
    assert pool.mint("lp").lp_minted == Decimal("100")

    base.mint(pool.address, 50)
    fy_token.mint(pool.address, 90)
    result = pool.mint("bob")
    assert result.lp_minted == Decimal("50")
    assert pool.get_reserves() == (Decimal("150"), Decimal("210"))

    pool.transfer("bob", pool.address, 50)
    burnt = pool.burn("bob")
    assert burnt.base_out == Decimal("50")
    assert burnt.fy_token_out == Decimal("70")
    assert pool.total_supply == Decimal("100")


def test_pool_mint_requires_deposit() -> None:
    base, vault, fy_token = _vault()
    pool = SimulatedPool("LP", base=base, fy_token=fy_token, address="pool")
    with pytest.raises(CollaboratorError):
        pool.mint("lp")


def test_vault_borrow_repay_close() -> None:
    base, vault, fy_token = _vault()
    base.mint("strategy", 100)
    vault_id = vault.open("2406", "strategy")

    with pytest.raises(CollaboratorError):
        vault.borrow(vault_id, 10, 11)
    vault.borrow(vault_id, 40, 40, to="pool")

    assert fy_token.balance_of("pool") == Decimal("40")
    assert base.balance_of("strategy") == Decimal("60")
    assert vault.debt(vault_id) == Decimal("40")

    fy_token.transfer("pool", "strategy", 30)
    assert vault.repay(vault_id, 30) == Decimal("10")
    assert base.balance_of("strategy") == Decimal("90")
    with pytest.raises(CollaboratorError):
        vault.close(vault_id)
    with pytest.raises(CollaboratorError):
        vault.repay_with_base(vault_id, 10, now=MATURITY - 1)

    assert vault.repay_with_base(vault_id, 10, now=MATURITY) == Decimal("0")
    assert vault.close(vault_id) == Decimal("0")
    assert base.balance_of("strategy") == Decimal("90")


def test_vault_settles_matured_debt_from_collateral() -> None:
    base, vault, fy_token = _vault()
    base.mint("strategy", 100)
    vault_id = vault.open("2406", "strategy")
    vault.borrow(vault_id, 40, 40, to="pool")

    with pytest.raises(CollaboratorError):
        vault.repay_with_collateral(vault_id, 40, now=MATURITY - 1)

    assert vault.repay_with_collateral(vault_id, 15, now=MATURITY) == Decimal("25")
    assert vault.vaults[vault_id].collateral == Decimal("25")
    assert vault.repay_with_collateral(vault_id, 100, now=MATURITY) == Decimal("0")
    assert vault.close(vault_id) == Decimal("0")
    assert base.balance_of("strategy") == Decimal("60")
    assert fy_token.balance_of("pool") == Decimal("40")


def test_vault_rejects_unknown_series() -> None:
    base, vault, fy_token = _vault()
    with pytest.raises(CollaboratorError):
        vault.series("9999")
    with pytest.raises(CollaboratorError):
        vault.add_series("2406", MATURITY)
