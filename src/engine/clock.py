"""Time sources for the strategy engine."""

from __future__ import annotations

import time
from dataclasses import dataclass


class SystemClock:
    """Wall-clock seconds, truncated the way block timestamps are."""

    def __call__(self) -> int:
        return int(time.time())


@dataclass
class ManualClock:
    """Clock that only moves when told to. Used by simulations and tests."""

    now: int = 0

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        self.now += seconds
        return self.now

    def set(self, timestamp: int) -> int:
        if timestamp < self.now:
            raise ValueError(
                f"clock cannot move backwards ({timestamp} < {self.now})"
            )
        self.now = timestamp
        return self.now
