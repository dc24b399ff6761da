"""Serialisable view of the strategy state."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class StrategySnapshot:
    timestamp: int = 0
    phase: str = "idle"
    pool: str | None = None
    series_id: str | None = None
    vault_id: str | None = None
    next_pool: str | None = None
    next_series_id: str | None = None
    buffer: str = "0"
    cached: str = "0"
    total_supply: str = "0"
    strategy_value: str = "0"
    limits: dict[str, str] | None = None
    pool_deviation_rate: str = "0"
    pool_cache: dict[str, Any] | None = None
    holders: dict[str, str] = field(default_factory=dict)
    events: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "phase": self.phase,
            "pool": self.pool,
            "series_id": self.series_id,
            "vault_id": self.vault_id,
            "next_pool": self.next_pool,
            "next_series_id": self.next_series_id,
            "buffer": self.buffer,
            "cached": self.cached,
            "total_supply": self.total_supply,
            "strategy_value": self.strategy_value,
            "limits": dict(self.limits) if self.limits is not None else None,
            "pool_deviation_rate": self.pool_deviation_rate,
            "pool_cache": dict(self.pool_cache) if self.pool_cache is not None else None,
            "holders": dict(self.holders),
            "events": list(self.events),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "StrategySnapshot":
        limits = payload.get("limits")
        pool_cache = payload.get("pool_cache")
        return cls(
            timestamp=int(payload.get("timestamp", 0)),
            phase=payload.get("phase", "idle"),
            pool=payload.get("pool"),
            series_id=payload.get("series_id"),
            vault_id=payload.get("vault_id"),
            next_pool=payload.get("next_pool"),
            next_series_id=payload.get("next_series_id"),
            buffer=str(payload.get("buffer", "0")),
            cached=str(payload.get("cached", "0")),
            total_supply=str(payload.get("total_supply", "0")),
            strategy_value=str(payload.get("strategy_value", "0")),
            limits=dict(limits) if limits is not None else None,
            pool_deviation_rate=str(payload.get("pool_deviation_rate", "0")),
            pool_cache=dict(pool_cache) if pool_cache is not None else None,
            holders=dict(payload.get("holders", {})),
            events=list(payload.get("events", [])),
        )

    def save(self, path: str | Path) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            json.dumps(self.to_payload(), indent=2, sort_keys=True), encoding="utf-8"
        )

    @classmethod
    def load(cls, path: str | Path) -> "StrategySnapshot":
        target = Path(path)
        if not target.exists():
            return cls()
        payload = json.loads(target.read_text(encoding="utf-8"))
        return cls.from_payload(payload)
