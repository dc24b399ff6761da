"""Pool-rotation strategy and reward streaming engines."""

from .errors import StrategyError
from .strategy import Strategy, StrategyConfig


def describe() -> str:
    return "Rolls pooled base liquidity across fixed-maturity pools and streams rewards to share holders."


__all__ = [
    "Strategy",
    "StrategyConfig",
    "StrategyError",
    "describe",
]
