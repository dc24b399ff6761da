"""Pydantic schemas for simulation scenario files."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SeriesSchema(BaseModel):
    """A fyToken series registered with the vault."""

    model_config = ConfigDict(extra="forbid")

    id: str
    maturity: int = Field(..., ge=0, description="Maturity timestamp in seconds")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)


class PoolSchema(BaseModel):
    """A pool seeded with initial reserves by an outside liquidity provider."""

    model_config = ConfigDict(extra="forbid")

    id: str
    series: str
    base_reserves: Decimal = Field(..., gt=0)
    fy_token_reserves: Decimal = Field(..., gt=0)

    @field_validator("id", "series", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)


class LimitsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    low: Decimal = Field(..., ge=0)
    mid: Decimal = Field(..., ge=0)
    high: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_order(self) -> "LimitsSchema":
        if not (self.low <= self.mid <= self.high):
            raise ValueError("limits must satisfy low <= mid <= high")
        return self


class RewardsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    rate: Decimal = Field(..., ge=0, description="Reward tokens per second")
    available: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_window(self) -> "RewardsSchema":
        if self.start > self.end:
            raise ValueError("rewards start must not be after end")
        return self

    def funding(self) -> Decimal:
        """Reward tokens to place with the strategy before the schedule is set."""
        if self.available is not None:
            return self.available
        return self.rate * (self.end - self.start)


class ScenarioSchema(BaseModel):
    """Complete scenario: the simulated world plus the steps to run against it."""

    model_config = ConfigDict(extra="allow")

    name: str = "Strategy Token"
    symbol: str = "STR"
    base_symbol: str
    start_time: int = Field(0, ge=0)
    pool_deviation_rate: Decimal | None = Field(None, ge=0)
    limits: LimitsSchema | None = None
    series: list[SeriesSchema] = Field(..., min_length=1)
    pools: list[PoolSchema] = Field(..., min_length=1)
    rewards: RewardsSchema | None = None
    steps: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_references(self) -> "ScenarioSchema":
        series_ids = {series.id for series in self.series}
        for pool in self.pools:
            if pool.series not in series_ids:
                raise ValueError(f"Pool {pool.id} references unknown series: {pool.series}")
        return self
