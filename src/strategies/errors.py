"""Named failure conditions raised by the strategy engines."""

from __future__ import annotations


class StrategyError(Exception):
    """Base exception for rejected strategy operations."""

    default_message = "Strategy operation rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class MismatchedBase(StrategyError):
    default_message = "Mismatched base"


class MismatchedSeriesId(StrategyError):
    default_message = "Mismatched seriesId"


class NextPoolNotSet(StrategyError):
    default_message = "Next pool not set"


class PoolSelected(StrategyError):
    default_message = "Pool selected"


class PoolNotSelected(StrategyError):
    default_message = "Pool not selected"


class OnlyAfterMaturity(StrategyError):
    default_message = "Only after maturity"


class NoFundsToStart(StrategyError):
    default_message = "No funds to start with"


class ReservesRatioChanged(StrategyError):
    default_message = "Reserves ratio changed"


class PoolDeviated(StrategyError):
    default_message = "Pool deviated"


class AlreadyInitialized(StrategyError):
    default_message = "Already initialized"


class LimitsOutOfOrder(StrategyError):
    default_message = "Limits out of order"


class InsufficientBuffer(StrategyError):
    default_message = "Insufficient buffer"


class IncorrectInput(StrategyError):
    default_message = "Incorrect input"


class OngoingRewards(StrategyError):
    default_message = "Ongoing rewards"


class RewardsNotSet(StrategyError):
    default_message = "Rewards not set"


class InsufficientRewards(StrategyError):
    default_message = "Insufficient rewards"


class PoolMatured(StrategyError):
    default_message = "Pool matured"
