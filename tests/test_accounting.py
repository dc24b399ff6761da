"""Tests for strategy valuation, minting and burning."""

from __future__ import annotations

from decimal import Decimal

import pytest

from engine.clock import ManualClock
from engine.ledger import TokenLedger
from engine.simulated import SimulatedPool, SimulatedVault
from strategies.errors import (
    AlreadyInitialized,
    IncorrectInput,
    NoFundsToStart,
    PoolSelected,
)
from strategies.strategy import Strategy

T = 1_700_000_000
MATURITY = T + 90 * 86400


def _world():
    clock = ManualClock(T)
    base = TokenLedger("USDC")
    vault = SimulatedVault(base)
    fy_token = vault.add_series("2406", MATURITY)
    pool = SimulatedPool("LP-2406", base=base, fy_token=fy_token, address="pool-2406")
    base.mint(pool.address, "1000")
    fy_token.mint(pool.address, "1100")
    pool.mint("lp")
    strategy = Strategy(base, vault, clock=clock)
    return clock, base, pool, strategy


def _deposit(base, strategy, holder: str, amount: str) -> Decimal:
    base.mint(holder, amount)
    base.transfer(holder, strategy.address, amount)
    return strategy.mint(holder)


def _redeem(strategy, holder: str, shares: Decimal):
    strategy.transfer(holder, strategy.address, shares)
    return strategy.burn(holder)


def test_init_issues_shares_one_to_one() -> None:
    clock, base, pool, strategy = _world()
    with pytest.raises(NoFundsToStart):
        strategy.init("alice")

    base.mint(strategy.address, "1000")
    assert strategy.init("alice") == Decimal("1000")
    assert strategy.balance_of("alice") == Decimal("1000")
    assert strategy.buffer() == Decimal("1000")
    assert strategy.events.last().name == "Initialized"

    base.mint(strategy.address, "1")
    with pytest.raises(AlreadyInitialized):
        strategy.init("bob")


def test_first_mint_is_one_to_one() -> None:
    clock, base, pool, strategy = _world()

    assert _deposit(base, strategy, "alice", "250") == Decimal("250")
    assert strategy.strategy_value() == Decimal("250")


def test_mint_requires_a_deposit() -> None:
    clock, base, pool, strategy = _world()
    with pytest.raises(IncorrectInput):
        strategy.mint("alice")


def test_mint_then_burn_round_trip_while_idle() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "1000")

    shares = _deposit(base, strategy, "bob", "500")
    outcome = _redeem(strategy, "bob", shares)

    assert shares == Decimal("500")
    assert outcome.base_out == Decimal("500")
    assert base.balance_of("bob") == Decimal("500")
    assert strategy.total_supply() == Decimal("1000")
    assert strategy.buffer() == Decimal("1000")


def test_mint_then_burn_round_trip_while_invested() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "2100")
    strategy.set_next_pool(pool, "2406")
    strategy.start_pool()
    supply_before = strategy.total_supply()

    shares = _deposit(base, strategy, "bob", "2100")
    outcome = _redeem(strategy, "bob", shares)

    assert shares == Decimal("2100")
    assert outcome.base_out == Decimal("1050")
    assert outcome.lp_out == Decimal("500")
    assert pool.balance_of("bob") == Decimal("500")
    returned_value = outcome.base_out + outcome.lp_out * Decimal("2.1")
    assert returned_value == Decimal("2100")
    assert strategy.total_supply() == supply_before
    assert strategy.cached() == Decimal("500")


def test_mint_accepts_lp_tokens() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "2100")
    strategy.set_next_pool(pool, "2406")
    strategy.start_pool()

    pool.transfer("lp", strategy.address, "100")
    minted = strategy.mint("carol")

    assert minted == Decimal("210")
    assert strategy.cached() == Decimal("1100")
    assert strategy.strategy_value() == Decimal("2310")


def test_strategy_value_counts_idle_fy_token() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "2100")
    strategy.set_next_pool(pool, "2406")
    strategy.start_pool()

    pool.fy_token.mint(strategy.address, "10")

    assert strategy.strategy_value() == Decimal("2110")


def test_burn_for_base_only_without_pool() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "900")
    strategy.transfer("alice", strategy.address, "300")

    outcome = strategy.burn_for_base("alice")

    assert outcome.base_out == Decimal("300")
    assert strategy.balance_of("alice") == Decimal("600")
    assert base.balance_of("alice") == Decimal("300")

    strategy.set_next_pool(pool, "2406")
    strategy.start_pool()
    strategy.transfer("alice", strategy.address, "100")
    with pytest.raises(PoolSelected):
        strategy.burn_for_base("alice")
    assert strategy.balance_of(strategy.address) == Decimal("100")


def test_burn_without_returned_shares_fails() -> None:
    clock, base, pool, strategy = _world()
    _deposit(base, strategy, "alice", "100")

    with pytest.raises(IncorrectInput):
        strategy.burn("alice")
