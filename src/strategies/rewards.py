"""Time-weighted reward streaming for holders of a balance-bearing token.

A fixed ``rate`` of reward tokens per second is split across the token supply.
The global accumulator tracks reward earned per unit of balance since the
schedule started; each holder keeps a checkpoint of that value and is settled
against it, using the balance held *before* any change, every time its balance
moves or it claims.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Hashable

from engine.collaborators import TokenLike
from strategies.errors import (
    IncorrectInput,
    InsufficientRewards,
    OngoingRewards,
    RewardsNotSet,
)
from utils.events import EventLog

LOGGER = logging.getLogger("rollover.strategy.rewards")

ZERO = Decimal("0")


@dataclass(frozen=True)
class RewardsSchedule:
    reward_token: str
    start: int
    end: int
    rate: Decimal
    available: Decimal | None = None


@dataclass
class RewardsPerToken:
    accumulated: Decimal = ZERO
    last_updated: int = 0


@dataclass
class UserRewards:
    accumulated: Decimal = ZERO
    checkpoint: Decimal = ZERO


def _to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class RewardScheme:
    """Accumulator and per-holder bookkeeping for one schedule."""

    def __init__(
        self, scheme_id: Hashable, schedule: RewardsSchedule, token: TokenLike, *, now: int
    ) -> None:
        self.scheme_id = scheme_id
        self.schedule = schedule
        self.token = token
        self.rewards_per_token = RewardsPerToken(last_updated=max(schedule.start, now))
        self.users: dict[str, UserRewards] = {}
        self.remaining = schedule.available

    def is_ongoing(self, now: int) -> bool:
        return self.schedule.start <= now <= self.schedule.end

    def claimable_period(self, now: int) -> int:
        """Seconds of emission not yet folded into the accumulator."""
        start = max(self.rewards_per_token.last_updated, self.schedule.start)
        end = min(now, self.schedule.end)
        return max(0, end - start)

    def pending_per_token(self, total_supply: Decimal, now: int) -> Decimal:
        period = self.claimable_period(now)
        if period == 0 or total_supply <= 0:
            return self.rewards_per_token.accumulated
        return (
            self.rewards_per_token.accumulated
            + self.schedule.rate * period / total_supply
        )

    def update(self, total_supply: Decimal, now: int) -> RewardsPerToken:
        # Emission while nobody holds the token is not distributed.
        self.rewards_per_token.accumulated = self.pending_per_token(total_supply, now)
        self.rewards_per_token.last_updated = max(
            self.rewards_per_token.last_updated, now
        )
        return self.rewards_per_token

    def owed(self, balance: Decimal, accumulated: Decimal, user: UserRewards) -> Decimal:
        return (accumulated - user.checkpoint) * balance + user.accumulated

    def settle(self, holder: str, balance: Decimal) -> UserRewards:
        user = self.users.setdefault(holder, UserRewards())
        accumulated = self.rewards_per_token.accumulated
        user.accumulated = self.owed(balance, accumulated, user)
        user.checkpoint = accumulated
        return user

    def supersede(self, schedule: RewardsSchedule, *, now: int) -> None:
        self.schedule = schedule
        self.remaining = schedule.available
        self.rewards_per_token.last_updated = max(schedule.start, now)

    def snapshot(self) -> dict[str, Any]:
        return {
            "schedule": self.schedule,
            "rewards_per_token": replace(self.rewards_per_token),
            "users": copy.deepcopy(self.users),
            "remaining": self.remaining,
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.schedule = state["schedule"]
        self.rewards_per_token = replace(state["rewards_per_token"])
        self.users = copy.deepcopy(state["users"])
        self.remaining = state["remaining"]


class RewardAccumulator:
    """Streams reward schedules to holders of ``ledger`` proportionally to balance-time.

    Schemes are keyed by an id (the schedule start unless given) and keep
    independent accumulators. Register :meth:`on_transfer` as a transfer hook on
    the ledger so that every balance change settles both sides first.
    """

    def __init__(
        self,
        ledger: TokenLike,
        *,
        address: str,
        clock: Callable[[], int],
        events: EventLog | None = None,
    ) -> None:
        self.ledger = ledger
        self.address = address
        self.clock = clock
        self.events = events if events is not None else EventLog()
        self.schemes: dict[Hashable, RewardScheme] = {}
        self._latest: Hashable | None = None

    def set_rewards(
        self,
        token: TokenLike,
        start: int,
        end: int,
        rate: Decimal | int | str,
        available: Decimal | int | str | None = None,
        *,
        now: int,
        scheme_id: Hashable | None = None,
    ) -> RewardsSchedule:
        rate_value = _to_decimal(rate)
        available_value = _to_decimal(available) if available is not None else None
        if start > end:
            raise IncorrectInput("Rewards start must not be after end")
        if rate_value < 0:
            raise IncorrectInput("Rewards rate must be non-negative")
        if available_value is not None and rate_value * (end - start) > available_value:
            raise InsufficientRewards(
                f"Schedule emits {rate_value * (end - start)} but only "
                f"{available_value} is available"
            )
        key = start if scheme_id is None else scheme_id
        schedule = RewardsSchedule(
            reward_token=token.address,
            start=start,
            end=end,
            rate=rate_value,
            available=available_value,
        )
        scheme = self.schemes.get(key)
        if scheme is None:
            self.schemes[key] = RewardScheme(key, schedule, token, now=now)
        else:
            if scheme.is_ongoing(now):
                raise OngoingRewards()
            if scheme.token.address != token.address:
                raise IncorrectInput("Reward token already set for this scheme")
            scheme.update(self.ledger.total_supply, now)
            scheme.supersede(schedule, now=now)
        self._latest = key
        self.events.emit(
            "RewardsSet",
            timestamp=now,
            scheme=key,
            token=token.address,
            start=start,
            end=end,
            rate=rate_value,
        )
        return schedule

    def update_accumulator(self, now: int) -> None:
        total_supply = self.ledger.total_supply
        for scheme in self.schemes.values():
            scheme.update(total_supply, now)

    def settle(self, holder: str, *, now: int) -> None:
        """Settle ``holder`` against every scheme using its current balance."""
        self.update_accumulator(now)
        balance = self.ledger.balance_of(holder)
        for scheme in self.schemes.values():
            user = scheme.settle(holder, balance)
            LOGGER.debug(
                "Settled %s on scheme %s: accumulated=%s checkpoint=%s",
                holder,
                scheme.scheme_id,
                user.accumulated,
                user.checkpoint,
            )

    def on_transfer(self, src: str | None, dst: str | None, amount: Decimal) -> None:
        if not self.schemes:
            return
        now = self.clock()
        self.update_accumulator(now)
        for holder in {src, dst} - {None}:
            balance = self.ledger.balance_of(holder)
            for scheme in self.schemes.values():
                scheme.settle(holder, balance)

    def claim(
        self, holder: str, to: str, *, now: int, scheme_id: Hashable | None = None
    ) -> Decimal:
        """Pay out everything ``holder`` has accrued to ``to``."""
        schemes = (
            list(self.schemes.values())
            if scheme_id is None
            else [self._scheme(scheme_id)]
        )
        if not schemes:
            raise RewardsNotSet()
        self.settle(holder, now=now)
        owed_by_token: dict[str, Decimal] = {}
        tokens: dict[str, TokenLike] = {}
        for scheme in schemes:
            owed = scheme.users[holder].accumulated
            if scheme.remaining is not None and owed > scheme.remaining:
                raise InsufficientRewards(
                    f"Scheme {scheme.scheme_id} has {scheme.remaining} left, owes {owed}"
                )
            address = scheme.token.address
            owed_by_token[address] = owed_by_token.get(address, ZERO) + owed
            tokens[address] = scheme.token
        for address, owed in owed_by_token.items():
            funded = tokens[address].balance_of(self.address)
            if funded < owed:
                raise InsufficientRewards(
                    f"{tokens[address].symbol} funding is {funded}, owes {owed}"
                )
        total = ZERO
        for scheme in schemes:
            user = scheme.users[holder]
            owed = user.accumulated
            user.accumulated = ZERO
            if scheme.remaining is not None:
                scheme.remaining -= owed
            if owed > 0:
                scheme.token.transfer(self.address, to, owed)
            total += owed
            self.events.emit(
                "Claimed",
                timestamp=now,
                scheme=scheme.scheme_id,
                holder=holder,
                to=to,
                amount=owed,
            )
        return total

    def schedule(self, scheme_id: Hashable | None = None) -> RewardsSchedule:
        return self._scheme(scheme_id).schedule

    def rewards_per_token(self, scheme_id: Hashable | None = None) -> RewardsPerToken:
        if scheme_id is None and not self.schemes:
            return RewardsPerToken()
        return replace(self._scheme(scheme_id).rewards_per_token)

    def rewards(self, holder: str, scheme_id: Hashable | None = None) -> UserRewards:
        """Settled bookkeeping for ``holder``; zero before any schedule exists."""
        if scheme_id is None and not self.schemes:
            return UserRewards()
        user = self._scheme(scheme_id).users.get(holder)
        return replace(user) if user is not None else UserRewards()

    def claimable_period(self, *, now: int, scheme_id: Hashable | None = None) -> int:
        if scheme_id is None and not self.schemes:
            return 0
        return self._scheme(scheme_id).claimable_period(now)

    def claimable_amount(
        self, holder: str, *, now: int, scheme_id: Hashable | None = None
    ) -> Decimal:
        """Reward ``holder`` could claim at ``now``, without settling anything."""
        if scheme_id is None and not self.schemes:
            return ZERO
        scheme = self._scheme(scheme_id)
        accumulated = scheme.pending_per_token(self.ledger.total_supply, now)
        user = scheme.users.get(holder, UserRewards())
        return scheme.owed(self.ledger.balance_of(holder), accumulated, user)

    def snapshot(self) -> dict[str, Any]:
        return {
            "schemes": dict(self.schemes),
            "states": {key: scheme.snapshot() for key, scheme in self.schemes.items()},
            "latest": self._latest,
        }

    def restore(self, state: dict[str, Any]) -> None:
        self.schemes = dict(state["schemes"])
        for key, scheme_state in state["states"].items():
            self.schemes[key].restore(scheme_state)
        self._latest = state["latest"]

    def _scheme(self, scheme_id: Hashable | None) -> RewardScheme:
        key = self._latest if scheme_id is None else scheme_id
        if key is None or key not in self.schemes:
            raise RewardsNotSet()
        return self.schemes[key]
