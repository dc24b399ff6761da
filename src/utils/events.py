"""Audit log of strategy operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator

LOGGER = logging.getLogger("rollover.events")


@dataclass(frozen=True)
class StrategyEvent:
    name: str
    timestamp: int
    params: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "params": {
                key: str(value) if isinstance(value, Decimal) else value
                for key, value in self.params.items()
            },
        }


class EventLog:
    """Append-only record of every mutating call and its resulting parameters."""

    def __init__(self) -> None:
        self._events: list[StrategyEvent] = []

    def __iter__(self) -> Iterator[StrategyEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def emit(self, name: str, *, timestamp: int, **params: Any) -> StrategyEvent:
        event = StrategyEvent(name=name, timestamp=timestamp, params=params)
        self._events.append(event)
        LOGGER.info(
            "%s %s",
            name,
            " ".join(f"{key}={value}" for key, value in params.items()),
            extra={"event": name, "event_timestamp": timestamp},
        )
        return event

    def named(self, name: str) -> list[StrategyEvent]:
        return [event for event in self._events if event.name == name]

    def last(self) -> StrategyEvent | None:
        return self._events[-1] if self._events else None

    def to_payload(self) -> list[dict[str, Any]]:
        return [event.to_payload() for event in self._events]

    def snapshot(self) -> int:
        return len(self._events)

    def restore(self, state: int) -> None:
        del self._events[state:]
