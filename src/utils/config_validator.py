"""Configuration validation utilities for rollover scenarios."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

STEP_OPS = {
    "fund",
    "init",
    "mint",
    "burn",
    "burn_for_base",
    "transfer",
    "advance",
    "set_next_pool",
    "queue_pools",
    "start_pool",
    "end_pool",
    "invest",
    "divest",
    "rebalance",
    "claim",
    "skew_pool",
}

# Fields each step operation cannot run without
STEP_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "fund": ("holder", "amount"),
    "init": ("holder", "amount"),
    "mint": ("holder", "amount"),
    "burn": ("holder", "amount"),
    "burn_for_base": ("holder", "amount"),
    "transfer": ("sender", "to", "amount"),
    "set_next_pool": ("pool",),
    "queue_pools": ("pools",),
    "invest": ("amount",),
    "divest": ("amount",),
    "claim": ("holder",),
    "skew_pool": ("pool",),
}


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""


def _decimal(config: dict[str, Any], field: str) -> Decimal:
    value = config[field]
    if isinstance(value, bool):
        raise ConfigValidationError(f"{field} must be a valid number, got: {value}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ConfigValidationError(
            f"{field} must be a valid number, got: {value}"
        ) from exc


def validate_positive_decimal(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field is a positive decimal value."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _decimal(config, field)
    if decimal_value <= 0:
        raise ConfigValidationError(f"{field} must be positive, got: {decimal_value}")


def validate_non_negative_decimal(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field is a non-negative decimal value."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _decimal(config, field)
    if decimal_value < 0:
        raise ConfigValidationError(
            f"{field} must be non-negative, got: {decimal_value}"
        )


def validate_positive_integer(
    config: dict[str, Any], field: str, *, required: bool = True, minimum: int = 1
) -> None:
    """Validate that a field is a positive integer."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigValidationError(
            f"{field} must be an integer, got: {type(value).__name__}"
        )

    if value < minimum:
        raise ConfigValidationError(f"{field} must be >= {minimum}, got: {value}")


def validate_choice(
    config: dict[str, Any], field: str, choices: set[str], *, required: bool = True
) -> None:
    """Validate that a field is one of the allowed choices."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str):
        raise ConfigValidationError(
            f"{field} must be a string, got: {type(value).__name__}"
        )

    if value not in choices:
        choices_str = ", ".join(sorted(choices))
        raise ConfigValidationError(
            f"{field} must be one of [{choices_str}], got: {value}"
        )


def validate_identifier(config: dict[str, Any], field: str) -> None:
    if field not in config:
        raise ConfigValidationError(f"Missing required field: {field}")
    value = config[field]
    if not isinstance(value, (str, int)) or isinstance(value, bool) or not str(value).strip():
        raise ConfigValidationError(f"{field} must be a non-empty string")


def validate_limits(config: dict[str, Any]) -> None:
    """Validate buffer limits, which must satisfy low <= mid <= high."""
    limits = config.get("limits")
    if limits is None:
        return
    if not isinstance(limits, dict):
        raise ConfigValidationError("limits must be a mapping with low, mid and high")
    for field in ("low", "mid", "high"):
        validate_non_negative_decimal(limits, field, required=True)
    low, mid, high = (_decimal(limits, field) for field in ("low", "mid", "high"))
    if not (low <= mid <= high):
        raise ConfigValidationError(
            f"limits must satisfy low <= mid <= high, got: {low}, {mid}, {high}"
        )


def validate_series(config: dict[str, Any]) -> set[str]:
    series = config.get("series")
    if not isinstance(series, list) or not series:
        raise ConfigValidationError("series must be a non-empty list")
    seen: set[str] = set()
    for entry in series:
        if not isinstance(entry, dict):
            raise ConfigValidationError("Each series entry must be a mapping")
        validate_identifier(entry, "id")
        validate_positive_integer(entry, "maturity", required=True)
        series_id = str(entry["id"])
        if series_id in seen:
            raise ConfigValidationError(f"Duplicate series id: {series_id}")
        seen.add(series_id)
    return seen


def validate_pools(config: dict[str, Any], series_ids: set[str]) -> set[str]:
    pools = config.get("pools")
    if not isinstance(pools, list) or not pools:
        raise ConfigValidationError("pools must be a non-empty list")
    seen: set[str] = set()
    for entry in pools:
        if not isinstance(entry, dict):
            raise ConfigValidationError("Each pool entry must be a mapping")
        validate_identifier(entry, "id")
        validate_identifier(entry, "series")
        pool_id = str(entry["id"])
        if str(entry["series"]) not in series_ids:
            raise ConfigValidationError(
                f"Pool {pool_id} references unknown series: {entry['series']}"
            )
        validate_positive_decimal(entry, "base_reserves", required=True)
        validate_positive_decimal(entry, "fy_token_reserves", required=True)
        if pool_id in seen:
            raise ConfigValidationError(f"Duplicate pool id: {pool_id}")
        seen.add(pool_id)
    return seen


def validate_rewards(config: dict[str, Any]) -> None:
    rewards = config.get("rewards")
    if rewards is None:
        return
    if not isinstance(rewards, dict):
        raise ConfigValidationError("rewards must be a mapping")
    validate_identifier(rewards, "token")
    validate_positive_integer(rewards, "start", required=True, minimum=0)
    validate_positive_integer(rewards, "end", required=True, minimum=0)
    validate_non_negative_decimal(rewards, "rate", required=True)
    validate_non_negative_decimal(rewards, "available", required=False)
    if rewards["start"] > rewards["end"]:
        raise ConfigValidationError(
            f"rewards start must not be after end, got: {rewards['start']} > {rewards['end']}"
        )


def validate_steps(config: dict[str, Any], pool_ids: set[str]) -> None:
    steps = config.get("steps", [])
    if not isinstance(steps, list):
        raise ConfigValidationError("steps must be a list")
    for index, step in enumerate(steps):
        if not isinstance(step, dict):
            raise ConfigValidationError(f"Step {index} must be a mapping")
        try:
            validate_choice(step, "op", STEP_OPS, required=True)
            for field in STEP_REQUIRED_FIELDS.get(step["op"], ()):
                if field not in step:
                    raise ConfigValidationError(f"Missing required field: {field}")
            if "amount" in step:
                validate_positive_decimal(step, "amount", required=False)
            if step["op"] == "advance":
                if "seconds" not in step and "to" not in step:
                    raise ConfigValidationError("advance needs seconds or to")
                validate_positive_integer(step, "seconds", required=False, minimum=0)
                validate_positive_integer(step, "to", required=False, minimum=0)
            referenced = list(step.get("pools", [])) + (
                [step["pool"]] if "pool" in step else []
            )
            for pool_id in referenced:
                if str(pool_id) not in pool_ids:
                    raise ConfigValidationError(f"Unknown pool: {pool_id}")
            if "expect_error" in step and not isinstance(step["expect_error"], str):
                raise ConfigValidationError("expect_error must be an error name")
        except ConfigValidationError as exc:
            raise ConfigValidationError(f"Step {index}: {exc}") from exc


def validate_scenario_config(config: dict[str, Any]) -> None:
    """
    Validate a simulation scenario.

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration must be a dictionary")

    if not config:
        raise ConfigValidationError("Configuration cannot be empty")

    validate_identifier(config, "base_symbol")
    validate_positive_integer(config, "start_time", required=False, minimum=0)
    validate_non_negative_decimal(config, "pool_deviation_rate", required=False)
    validate_limits(config)
    series_ids = validate_series(config)
    pool_ids = validate_pools(config, series_ids)
    validate_rewards(config)
    validate_steps(config, pool_ids)
