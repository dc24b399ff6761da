"""Tests for scripted scenario runs and the CLI."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from cli.main import load_config, main
from engine.scenario_runner import ScenarioError, build_world, run_scenario
from engine.state import StrategySnapshot

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "strategy_example.yml"

T = 1_700_000_000
MATURITY = T + 90 * 86400


def _config(steps):
    return {
        "name": "test",
        "base_symbol": "USDC",
        "start_time": T,
        "series": [
            {"id": "2406", "maturity": MATURITY},
            {"id": "2409", "maturity": MATURITY + 90 * 86400},
        ],
        "pools": [
            {
                "id": "pool-2406",
                "series": "2406",
                "base_reserves": "1000",
                "fy_token_reserves": "1100",
            },
            {
                "id": "pool-2409",
                "series": "2409",
                "base_reserves": "1000",
                "fy_token_reserves": "1100",
            },
        ],
        "rewards": {"token": "RWD", "start": T, "end": T + 2_000_000, "rate": "1"},
        "steps": steps,
    }


def test_build_world_seeds_pools_and_rewards() -> None:
    world = build_world(_config([]))

    pool = world.pools["pool-2406"]
    assert pool.get_reserves() == (Decimal("1000"), Decimal("1100"))
    assert pool.balance_of("liquidity-provider") == Decimal("1000")
    assert world.pool_series["pool-2409"] == "2409"
    assert world.reward_token.balance_of(world.strategy.address) == Decimal("2000000")
    assert world.strategy.events.last().name == "RewardsSet"


def test_run_scenario_rolls_between_pools() -> None:
    snapshot = run_scenario(
        _config(
            [
                {"op": "fund", "holder": "alice", "amount": "2100"},
                {"op": "init", "holder": "alice", "amount": "2100"},
                {"op": "queue_pools", "pools": ["pool-2406", "pool-2409"]},
                {"op": "start_pool"},
                {"op": "end_pool", "expect_error": "OnlyAfterMaturity"},
                {"op": "advance", "to": MATURITY},
                {"op": "end_pool"},
                {"op": "start_pool"},
            ]
        )
    )

    assert snapshot.phase == "active"
    assert snapshot.pool == "pool-2409"
    assert snapshot.series_id == "2409"
    assert snapshot.next_pool is None
    assert Decimal(snapshot.cached) == Decimal("1000")
    assert snapshot.holders == {"alice": "2100"}
    names = [event["name"] for event in snapshot.events]
    assert names.count("PoolStarted") == 2
    assert "PoolEnded" in names


def test_run_scenario_claims_rewards() -> None:
    world_config = _config(
        [
            {"op": "fund", "holder": "alice", "amount": "1000"},
            {"op": "init", "holder": "alice", "amount": "1000"},
            {"op": "advance", "seconds": 1_000_000},
            {"op": "claim", "holder": "alice"},
        ]
    )

    snapshot = run_scenario(world_config)

    claimed = [event for event in snapshot.events if event["name"] == "Claimed"]
    assert claimed[0]["params"]["amount"] == "1000000"


def test_expected_error_that_does_not_happen_fails() -> None:
    with pytest.raises(ScenarioError, match="succeeded, expected"):
        run_scenario(
            _config(
                [
                    {"op": "fund", "holder": "alice", "amount": "1"},
                    {"op": "fund", "holder": "bob", "amount": "1", "expect_error": "IncorrectInput"},
                ]
            )
        )


def test_unexpected_error_kind_fails() -> None:
    with pytest.raises(ScenarioError, match="raised NextPoolNotSet"):
        run_scenario(_config([{"op": "start_pool", "expect_error": "PoolSelected"}]))


def test_expected_error_matches_base_class() -> None:
    snapshot = run_scenario(
        _config([{"op": "start_pool", "expect_error": "StrategyError"}])
    )
    assert snapshot.phase == "idle"


def test_state_path_written(tmp_path: Path) -> None:
    state_path = tmp_path / "out" / "state.json"

    run_scenario(
        _config(
            [
                {"op": "fund", "holder": "alice", "amount": "10"},
                {"op": "init", "holder": "alice", "amount": "10"},
            ]
        ),
        state_path,
    )

    loaded = StrategySnapshot.load(state_path)
    assert loaded.holders == {"alice": "10"}
    assert loaded.buffer == "10"
    assert json.loads(state_path.read_text(encoding="utf-8"))["phase"] == "idle"


def test_snapshot_load_missing_file_returns_default(tmp_path: Path) -> None:
    assert StrategySnapshot.load(tmp_path / "missing.json") == StrategySnapshot()


def test_example_config_runs() -> None:
    config = load_config(EXAMPLE_CONFIG)
    snapshot = run_scenario(config)

    assert snapshot.pool == "pool-2409"
    assert snapshot.phase == "active"
    assert "carol" not in snapshot.holders


def test_load_config_rejects_unknown_format(tmp_path: Path) -> None:
    path = tmp_path / "scenario.ini"
    path.write_text("[x]", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported config format"):
        load_config(path)


def test_cli_validate(tmp_path: Path) -> None:
    path = tmp_path / "scenario.yml"
    path.write_text(yaml.safe_dump(_config([])), encoding="utf-8")
    assert main(["validate", "--config", str(path)]) == 0

    broken = _config([{"op": "swap"}])
    path.write_text(yaml.safe_dump(broken), encoding="utf-8")
    assert main(["validate", "--config", str(path)]) == 2


def test_cli_simulate_writes_state(tmp_path: Path, capsys) -> None:
    path = tmp_path / "scenario.json"
    path.write_text(
        json.dumps(
            _config(
                [
                    {"op": "fund", "holder": "alice", "amount": "2100"},
                    {"op": "init", "holder": "alice", "amount": "2100"},
                    {"op": "set_next_pool", "pool": "pool-2406"},
                    {"op": "start_pool"},
                ]
            )
        ),
        encoding="utf-8",
    )

    assert main(["simulate", "--config", str(path)]) == 0

    output = capsys.readouterr().out
    assert "PoolStarted" in output
    assert "phase=active" in output
    state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert state["pool"] == "pool-2406"


def test_cli_simulate_reports_missing_file(tmp_path: Path) -> None:
    assert main(["simulate", "--config", str(tmp_path / "missing.yml")]) == 2
