"""Runner utilities for scripted strategy simulations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

from engine.clock import ManualClock
from engine.ledger import TokenLedger
from engine.scenario_schema import ScenarioSchema
from engine.simulated import SimulatedPool, SimulatedVault
from engine.state import StrategySnapshot
from strategies.investing import DEFAULT_POOL_DEVIATION_RATE, Limits
from strategies.strategy import Strategy, StrategyConfig
from utils.logging_config import LogContext, get_logger

LOGGER = logging.getLogger("rollover.scenario")

LIQUIDITY_PROVIDER = "liquidity-provider"


class ScenarioError(RuntimeError):
    """Raised when a scenario step does not behave as scripted."""


@dataclass
class ScenarioWorld:
    clock: ManualClock
    base: TokenLedger
    vault: SimulatedVault
    strategy: Strategy
    pools: dict[str, SimulatedPool] = field(default_factory=dict)
    pool_series: dict[str, str] = field(default_factory=dict)
    reward_token: TokenLedger | None = None


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def build_limits(scenario: ScenarioSchema) -> Limits | None:
    if scenario.limits is None:
        return None
    return Limits(
        low=scenario.limits.low,
        mid=scenario.limits.mid,
        high=scenario.limits.high,
    )


def build_world(config: dict) -> ScenarioWorld:
    scenario = ScenarioSchema.model_validate(config)
    clock = ManualClock(scenario.start_time)
    base = TokenLedger(scenario.base_symbol)
    vault = SimulatedVault(base)
    for series in scenario.series:
        vault.add_series(series.id, series.maturity)

    strategy_config = StrategyConfig(
        name=scenario.name,
        symbol=scenario.symbol,
        limits=build_limits(scenario),
        pool_deviation_rate=(
            scenario.pool_deviation_rate
            if scenario.pool_deviation_rate is not None
            else DEFAULT_POOL_DEVIATION_RATE
        ),
    )
    strategy = Strategy(base, vault, config=strategy_config, clock=clock)
    world = ScenarioWorld(clock=clock, base=base, vault=vault, strategy=strategy)

    for entry in scenario.pools:
        pool = SimulatedPool(
            f"LP-{entry.id}",
            base=base,
            fy_token=vault.fy_tokens[entry.series],
            address=entry.id,
        )
        base.mint(pool.address, entry.base_reserves)
        pool.fy_token.mint(pool.address, entry.fy_token_reserves)
        pool.mint(LIQUIDITY_PROVIDER)
        world.pools[entry.id] = pool
        world.pool_series[entry.id] = entry.series

    rewards = scenario.rewards
    if rewards is not None:
        reward_token = TokenLedger(rewards.token)
        available = rewards.funding()
        reward_token.mint(strategy.address, available)
        strategy.set_rewards(
            reward_token, rewards.start, rewards.end, rewards.rate, available
        )
        world.reward_token = reward_token
    return world


def _deposit(world: ScenarioWorld, step: dict) -> None:
    world.base.transfer(
        str(step["holder"]), world.strategy.address, _decimal(step["amount"])
    )


def _return_shares(world: ScenarioWorld, step: dict) -> None:
    world.strategy.transfer(
        str(step["holder"]), world.strategy.address, _decimal(step["amount"])
    )


def _fund(world: ScenarioWorld, step: dict) -> Any:
    token_symbol = step.get("token")
    token = world.base
    if token_symbol and world.reward_token and token_symbol == world.reward_token.symbol:
        token = world.reward_token
    token.mint(str(step["holder"]), _decimal(step["amount"]))


def _init(world: ScenarioWorld, step: dict) -> Any:
    _deposit(world, step)
    return world.strategy.init(str(step["holder"]))


def _mint(world: ScenarioWorld, step: dict) -> Any:
    _deposit(world, step)
    return world.strategy.mint(str(step["holder"]))


def _burn(world: ScenarioWorld, step: dict) -> Any:
    _return_shares(world, step)
    return world.strategy.burn(str(step.get("to", step["holder"])))


def _burn_for_base(world: ScenarioWorld, step: dict) -> Any:
    _return_shares(world, step)
    return world.strategy.burn_for_base(str(step.get("to", step["holder"])))


def _transfer(world: ScenarioWorld, step: dict) -> Any:
    world.strategy.transfer(str(step["sender"]), str(step["to"]), _decimal(step["amount"]))


def _advance(world: ScenarioWorld, step: dict) -> Any:
    if "to" in step:
        return world.clock.set(int(step["to"]))
    return world.clock.advance(int(step["seconds"]))


def _series_for(world: ScenarioWorld, step: dict, pool_id: str) -> str:
    return str(step.get("series", world.pool_series[pool_id]))


def _set_next_pool(world: ScenarioWorld, step: dict) -> Any:
    pool_id = str(step["pool"])
    return world.strategy.set_next_pool(
        world.pools[pool_id], _series_for(world, step, pool_id)
    )


def _queue_pools(world: ScenarioWorld, step: dict) -> Any:
    pool_ids = [str(pool_id) for pool_id in step["pools"]]
    series_ids = step.get("series_ids") or [
        world.pool_series[pool_id] for pool_id in pool_ids
    ]
    return world.strategy.queue_pools(
        [world.pools[pool_id] for pool_id in pool_ids],
        [str(series_id) for series_id in series_ids],
    )


def _start_pool(world: ScenarioWorld, step: dict) -> Any:
    return world.strategy.start_pool(
        step.get("min_ratio", "0"),
        step.get("max_ratio"),
        caller=str(step.get("caller", "owner")),
    )


def _end_pool(world: ScenarioWorld, step: dict) -> Any:
    return world.strategy.end_pool()


def _invest(world: ScenarioWorld, step: dict) -> Any:
    return world.strategy.borrow_and_invest(step["amount"])


def _divest(world: ScenarioWorld, step: dict) -> Any:
    return world.strategy.divest_and_repay(step["amount"])


def _rebalance(world: ScenarioWorld, step: dict) -> Any:
    return world.strategy.rebalance_buffer()


def _claim(world: ScenarioWorld, step: dict) -> Any:
    holder = str(step["holder"])
    return world.strategy.claim(holder, str(step.get("to", holder)))


def _skew_pool(world: ScenarioWorld, step: dict) -> Any:
    """Donate tokens straight to a pool, moving its reserve ratio."""
    pool = world.pools[str(step["pool"])]
    if "base" in step:
        world.base.mint(pool.address, _decimal(step["base"]))
    if "fy_token" in step:
        pool.fy_token.mint(pool.address, _decimal(step["fy_token"]))
    pool.sync()
    return pool.get_reserves()


STEP_HANDLERS: dict[str, Callable[[ScenarioWorld, dict], Any]] = {
    "fund": _fund,
    "init": _init,
    "mint": _mint,
    "burn": _burn,
    "burn_for_base": _burn_for_base,
    "transfer": _transfer,
    "advance": _advance,
    "set_next_pool": _set_next_pool,
    "queue_pools": _queue_pools,
    "start_pool": _start_pool,
    "end_pool": _end_pool,
    "invest": _invest,
    "divest": _divest,
    "rebalance": _rebalance,
    "claim": _claim,
    "skew_pool": _skew_pool,
}


def _error_matches(exc: Exception, expected: str) -> bool:
    return any(klass.__name__ == expected for klass in type(exc).__mro__)


def apply_step(world: ScenarioWorld, step: dict) -> Any:
    op = step["op"]
    handler = STEP_HANDLERS.get(op)
    if handler is None:
        raise ScenarioError(f"Unknown step op '{op}'")
    expected = step.get("expect_error")
    if expected is None:
        return handler(world, step)
    try:
        handler(world, step)
    except Exception as exc:
        if not _error_matches(exc, expected):
            raise ScenarioError(
                f"{op} raised {type(exc).__name__} ({exc}), expected {expected}"
            ) from exc
        LOGGER.info("%s rejected as expected: %s", op, exc)
        return exc
    raise ScenarioError(f"{op} succeeded, expected {expected}")


def run_scenario(config: dict, state_path: Path | None = None) -> StrategySnapshot:
    world = build_world(config)
    name = str(config.get("name", "scenario"))
    logger = get_logger("rollover.scenario", scenario=name)
    for index, step in enumerate(config.get("steps", [])):
        with LogContext(step=index, op=step["op"]):
            result = apply_step(world, step)
            logger.debug("Step %d %s -> %s", index, step["op"], result)
    snapshot = world.strategy.describe_state()
    if state_path is not None:
        snapshot.save(state_path)
        LOGGER.info("Wrote final state to %s", state_path)
    return snapshot
