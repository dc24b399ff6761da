"""Tests for scenario configuration validation."""

from __future__ import annotations

import copy

import pytest

from utils.config_validator import ConfigValidationError, validate_scenario_config

BASE_CONFIG = {
    "base_symbol": "USDC",
    "start_time": 1_700_000_000,
    "limits": {"low": "100", "mid": "500", "high": "2000"},
    "series": [{"id": "2406", "maturity": 1_707_776_000}],
    "pools": [
        {
            "id": "pool-2406",
            "series": "2406",
            "base_reserves": "1000",
            "fy_token_reserves": "1100",
        }
    ],
    "rewards": {
        "token": "RWD",
        "start": 1_700_000_000,
        "end": 1_700_100_000,
        "rate": "1",
    },
    "steps": [
        {"op": "fund", "holder": "alice", "amount": "100"},
        {"op": "set_next_pool", "pool": "pool-2406"},
        {"op": "advance", "seconds": 60},
        {"op": "start_pool", "expect_error": "NoFundsToStart"},
    ],
}


def _config(**overrides):
    config = copy.deepcopy(BASE_CONFIG)
    config.update(overrides)
    return config


def test_valid_config_passes() -> None:
    validate_scenario_config(_config())


def test_empty_config_rejected() -> None:
    with pytest.raises(ConfigValidationError, match="cannot be empty"):
        validate_scenario_config({})


def test_limits_must_be_ordered() -> None:
    config = _config(limits={"low": "600", "mid": "500", "high": "2000"})
    with pytest.raises(ConfigValidationError, match="low <= mid <= high"):
        validate_scenario_config(config)


def test_pool_must_reference_known_series() -> None:
    config = _config()
    config["pools"][0]["series"] = "2409"
    with pytest.raises(ConfigValidationError, match="unknown series"):
        validate_scenario_config(config)


def test_pool_reserves_must_be_positive() -> None:
    config = _config()
    config["pools"][0]["base_reserves"] = "0"
    with pytest.raises(ConfigValidationError, match="base_reserves must be positive"):
        validate_scenario_config(config)


def test_rewards_window_must_be_ordered() -> None:
    config = _config()
    config["rewards"]["end"] = config["rewards"]["start"] - 1
    with pytest.raises(ConfigValidationError, match="start must not be after end"):
        validate_scenario_config(config)


def test_unknown_step_rejected_with_index() -> None:
    config = _config(steps=[{"op": "swap"}])
    with pytest.raises(ConfigValidationError, match="Step 0: op must be one of"):
        validate_scenario_config(config)


def test_step_missing_field_rejected() -> None:
    config = _config(steps=[{"op": "invest"}])
    with pytest.raises(ConfigValidationError, match="Missing required field: amount"):
        validate_scenario_config(config)


def test_step_referencing_unknown_pool_rejected() -> None:
    config = _config(steps=[{"op": "queue_pools", "pools": ["pool-2406", "pool-x"]}])
    with pytest.raises(ConfigValidationError, match="Unknown pool: pool-x"):
        validate_scenario_config(config)


def test_advance_needs_duration_or_target() -> None:
    config = _config(steps=[{"op": "advance"}])
    with pytest.raises(ConfigValidationError, match="advance needs seconds or to"):
        validate_scenario_config(config)
