"""Tests for typed scenario parsing."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from engine.scenario_schema import RewardsSchema, ScenarioSchema


def _payload(**overrides):
    payload = {
        "base_symbol": "USDC",
        "series": [{"id": 2406, "maturity": 1_707_776_000}],
        "pools": [
            {
                "id": "pool-2406",
                "series": 2406,
                "base_reserves": "1000",
                "fy_token_reserves": 1100,
            }
        ],
    }
    payload.update(overrides)
    return payload


def test_scenario_schema_coerces_ids_and_amounts() -> None:
    scenario = ScenarioSchema.model_validate(_payload())

    assert scenario.series[0].id == "2406"
    assert scenario.pools[0].series == "2406"
    assert scenario.pools[0].base_reserves == Decimal("1000")
    assert scenario.pools[0].fy_token_reserves == Decimal("1100")
    assert scenario.start_time == 0
    assert scenario.limits is None
    assert scenario.steps == []


def test_scenario_schema_keeps_steps_as_written() -> None:
    steps = [{"op": "advance", "seconds": 60}]
    scenario = ScenarioSchema.model_validate(_payload(steps=steps))

    assert scenario.steps == steps


def test_scenario_schema_rejects_unknown_series() -> None:
    payload = _payload()
    payload["pools"][0]["series"] = "2409"
    with pytest.raises(ValidationError, match="unknown series"):
        ScenarioSchema.model_validate(payload)


def test_scenario_schema_rejects_unordered_limits() -> None:
    with pytest.raises(ValidationError, match="low <= mid <= high"):
        ScenarioSchema.model_validate(
            _payload(limits={"low": "10", "mid": "5", "high": "20"})
        )


def test_scenario_schema_rejects_empty_reserves() -> None:
    payload = _payload()
    payload["pools"][0]["base_reserves"] = "0"
    with pytest.raises(ValidationError):
        ScenarioSchema.model_validate(payload)


def test_rewards_funding_defaults_to_full_emission() -> None:
    rewards = RewardsSchema(token="RWD", start=100, end=200, rate="0.5")
    assert rewards.funding() == Decimal("50")

    capped = RewardsSchema(token="RWD", start=100, end=200, rate="0.5", available="20")
    assert capped.funding() == Decimal("20")


def test_rewards_schema_rejects_inverted_window() -> None:
    with pytest.raises(ValidationError, match="start must not be after end"):
        RewardsSchema(token="RWD", start=200, end=100, rate="1")
