# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Account Selection Strategies for the Account Scheduler.

This module implements the policies that pick one account per outbound
request from a live snapshot of account metrics. The selection functions are
pure: they read the token tracker but never consume from it, so the
orchestrator decides when capacity is actually reserved.

Filter order is identical for every policy:

1. **Availability**: rate-limited and cooling-down accounts are dropped
2. **Health**: accounts below the minimum usable score are dropped
3. **Tokens**: accounts without a token for the request are dropped
   (hybrid and priority-queue only)

A candidate failing any filter is never selectable regardless of score.

Implemented Policies:

1. **StickyStrategy**: Keep the current account until it becomes unavailable
2. **RoundRobinStrategy**: Rotate through available accounts in index order
3. **HybridStrategy**: Score-based pick with hysteresis around the current account
4. **PriorityQueueStrategy**: Weighted random pick favouring healthy, rested accounts
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ..config import AccountSelectionStrategy
from ..tracking.token_bucket import TokenBucketTracker
from ..types.account import AccountWithMetrics

logger = logging.getLogger(__name__)

STICKINESS_BONUS = 150
"""Added to the current account's score when ranking, never to its base score."""

SWITCH_THRESHOLD = 100
"""Minimum base-score advantage required to move away from the current account."""

DEFAULT_MIN_HEALTH_SCORE = 50

_MAX_FRESHNESS_SECONDS = 3600


@dataclass(frozen=True)
class SelectionCandidate:
    """
    Scored account considered by the hybrid policy.

    Attributes:
        index: Account index
        base_score: Health, token and freshness components, floored at 0
        score: base_score plus the stickiness bonus when is_current
        last_used: Epoch seconds of last use (LRU tie-break)
        is_current: Whether this is the account used by the previous request
    """

    index: int
    base_score: float
    score: float
    last_used: float
    is_current: bool


def _is_eligible(account: AccountWithMetrics, min_health_score: float) -> bool:
    return account.is_available and account.health_score >= min_health_score


def sort_by_lru_with_health(
    accounts: Sequence[AccountWithMetrics],
    min_health_score: float = DEFAULT_MIN_HEALTH_SCORE,
) -> list[AccountWithMetrics]:
    """
    Sort usable accounts least recently used first.

    Rate-limited, cooling-down and unhealthy accounts are excluded. Among
    accounts with the same ``last_used`` the higher health score comes first.

    Returns:
        The full ordered candidate list (may be empty).
    """
    eligible = [acc for acc in accounts if _is_eligible(acc, min_health_score)]
    return sorted(eligible, key=lambda acc: (acc.last_used, -acc.health_score))


def calculate_hybrid_score(
    account: AccountWithMetrics, tokens: float, max_tokens: float, now: float
) -> float:
    """
    Base score of an account for the hybrid policy.

    ``health*2`` (0-200) + ``tokens/max_tokens*500`` (0-500) +
    ``min(seconds_idle, 3600)*0.1`` (0-360), floored at 0.
    """
    health_component = account.health_score * 2
    token_component = (tokens / max_tokens) * 100 * 5 if max_tokens > 0 else 0.0
    seconds_idle = now - account.last_used
    freshness_component = min(seconds_idle, _MAX_FRESHNESS_SECONDS) * 0.1
    return max(0.0, health_component + token_component + freshness_component)


def select_hybrid_account(
    accounts: Sequence[AccountWithMetrics],
    token_tracker: TokenBucketTracker,
    current_index: int | None = None,
    min_health_score: float = DEFAULT_MIN_HEALTH_SCORE,
    now: float | None = None,
) -> int | None:
    """
    Select an account by score with stickiness.

    The current account gets STICKINESS_BONUS for ranking. When another
    account wins the ranking, the scheduler still stays on the current account
    unless the winner's base score beats the current base score by at least
    SWITCH_THRESHOLD. Equal scores are broken by least recently used, then by
    lowest index.

    Args:
        accounts: Snapshot of all enabled accounts
        token_tracker: Token balances (read only)
        current_index: Account used by the previous request, if any
        min_health_score: Minimum health score to be considered
        now: Epoch seconds used for the freshness component

    Returns:
        Best account index, or None if no account passes the filters.
    """
    if now is None:
        now = time.time()

    max_tokens = token_tracker.get_max_tokens()
    candidates: list[SelectionCandidate] = []
    for acc in accounts:
        if not _is_eligible(acc, min_health_score):
            continue
        if not token_tracker.has_tokens(acc.index):
            continue
        base_score = calculate_hybrid_score(
            acc, token_tracker.get_tokens(acc.index), max_tokens, now
        )
        is_current = acc.index == current_index
        candidates.append(
            SelectionCandidate(
                index=acc.index,
                base_score=base_score,
                score=base_score + (STICKINESS_BONUS if is_current else 0),
                last_used=acc.last_used,
                is_current=is_current,
            )
        )

    if not candidates:
        return None

    best = min(candidates, key=lambda c: (-c.score, c.last_used, c.index))
    current = next((c for c in candidates if c.is_current), None)
    if current is not None and not best.is_current:
        # Unreachable while STICKINESS_BONUS > SWITCH_THRESHOLD: a winner over
        # the current account already leads its base score by the bonus.
        advantage = best.base_score - current.base_score
        if advantage < SWITCH_THRESHOLD:
            return current.index

    return best.index


def select_priority_queue_account(
    accounts: Sequence[AccountWithMetrics],
    token_tracker: TokenBucketTracker,
    min_health_score: float = DEFAULT_MIN_HEALTH_SCORE,
    rng: random.Random | None = None,
) -> int | None:
    """
    Weighted random pick with weight ``health_score * tokens``.

    Healthier, better-rested accounts are statistically preferred while load
    still spreads across every eligible account. When every weight is zero
    the pick is uniform.

    Returns:
        Selected account index, or None if no account passes the filters.
    """
    rand = rng or random
    eligible = [
        acc
        for acc in accounts
        if _is_eligible(acc, min_health_score)
        and token_tracker.has_tokens(acc.index)
    ]
    if not eligible:
        return None

    weights = [
        max(0.0, acc.health_score * token_tracker.get_tokens(acc.index))
        for acc in eligible
    ]
    total_weight = sum(weights)
    if total_weight <= 0:
        return rand.choice(eligible).index  # noqa: S311  # nosec B311

    random_value = rand.random() * total_weight  # noqa: S311  # nosec B311
    cumulative_weight = 0.0
    for acc, weight in zip(eligible, weights):
        cumulative_weight += weight
        if random_value < cumulative_weight:
            return acc.index

    return eligible[-1].index


class RoundRobinCursor:
    """
    Cursor over available accounts in index order, wrapping.

    The cursor remembers the last index it returned; ``next`` returns the
    smallest available index after it, or wraps to the smallest available
    index overall.
    """

    def __init__(self, position: int = -1) -> None:
        self.position = position

    def next(
        self,
        accounts: Sequence[AccountWithMetrics],
        after: int | None = None,
    ) -> int | None:
        """
        Advance to the next available account.

        Args:
            accounts: Snapshot of all enabled accounts
            after: Start searching after this index instead of the cursor

        Returns:
            The selected index, or None if no account is available.
        """
        available = sorted(acc.index for acc in accounts if acc.is_available)
        if not available:
            return None

        start = self.position if after is None else after
        selected = next((i for i in available if i > start), available[0])
        self.position = selected
        return selected

    def seed(self, offset: int, account_count: int) -> None:
        """Position the cursor so the next pick starts at ``offset % account_count``."""
        if account_count > 0:
            self.position = (offset % account_count) - 1


def select_sticky_account(
    accounts: Sequence[AccountWithMetrics],
    current_index: int | None,
    cursor: RoundRobinCursor,
) -> int | None:
    """
    Keep the current account while it is available.

    When there is no current account, or it is rate-limited or cooling down,
    fall back to the round-robin cursor starting after the current account.
    """
    if current_index is not None:
        for acc in accounts:
            if acc.index == current_index and acc.is_available:
                return current_index
    return cursor.next(accounts, after=current_index)


@dataclass
class SelectionContext:
    """
    Inputs a strategy needs beyond the account snapshot.

    Attributes:
        token_tracker: Token balances (read only)
        current_index: Account used by the previous request for this quota group
        min_health_score: Minimum health score to be considered
        now: Epoch seconds of the selection
    """

    token_tracker: TokenBucketTracker
    current_index: int | None = None
    min_health_score: float = DEFAULT_MIN_HEALTH_SCORE
    now: float | None = None


class BaseSelectionStrategy(ABC):
    """
    Abstract base class for account selection policies.

    Implementations must be synchronous and must not mutate the trackers.
    """

    name: AccountSelectionStrategy

    @abstractmethod
    def select(
        self, accounts: Sequence[AccountWithMetrics], context: SelectionContext
    ) -> int | None:
        """
        Select an account index from the snapshot.

        Args:
            accounts: Snapshot of all enabled accounts, excluded ones included
                with their flags set.
            context: Trackers and the previous selection.

        Returns:
            The selected account index, or None when nothing is selectable.
        """
        pass


class StickyStrategy(BaseSelectionStrategy):
    """Use the same account until it is rate-limited. Preserves prompt caches."""

    name = AccountSelectionStrategy.STICKY

    def __init__(self, cursor: RoundRobinCursor | None = None) -> None:
        self.cursor = cursor or RoundRobinCursor()

    def select(
        self, accounts: Sequence[AccountWithMetrics], context: SelectionContext
    ) -> int | None:
        return select_sticky_account(accounts, context.current_index, self.cursor)


class RoundRobinStrategy(BaseSelectionStrategy):
    """Rotate to the next available account on every request."""

    name = AccountSelectionStrategy.ROUND_ROBIN

    def __init__(self, cursor: RoundRobinCursor | None = None) -> None:
        self.cursor = cursor or RoundRobinCursor()

    def select(
        self, accounts: Sequence[AccountWithMetrics], context: SelectionContext
    ) -> int | None:
        return self.cursor.next(accounts)


class HybridStrategy(BaseSelectionStrategy):
    """Score by health, tokens and idle time, with switch hysteresis."""

    name = AccountSelectionStrategy.HYBRID

    def select(
        self, accounts: Sequence[AccountWithMetrics], context: SelectionContext
    ) -> int | None:
        return select_hybrid_account(
            accounts,
            context.token_tracker,
            current_index=context.current_index,
            min_health_score=context.min_health_score,
            now=context.now,
        )


class PriorityQueueStrategy(BaseSelectionStrategy):
    """Weighted random pick favouring healthy accounts with spare tokens."""

    name = AccountSelectionStrategy.PRIORITY_QUEUE

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()  # noqa: S311  # nosec B311

    def select(
        self, accounts: Sequence[AccountWithMetrics], context: SelectionContext
    ) -> int | None:
        return select_priority_queue_account(
            accounts,
            context.token_tracker,
            min_health_score=context.min_health_score,
            rng=self.rng,
        )


def create_strategy(
    strategy_name: str | AccountSelectionStrategy,
    *,
    cursor: RoundRobinCursor | None = None,
    rng: random.Random | None = None,
) -> BaseSelectionStrategy:
    """
    Factory function for creating selection strategies by name.

    Available Strategies:

    **sticky**: Best when upstream prompt caching matters
    **round-robin**: Maximum throughput across the pool
    **hybrid**: Default; balances health, capacity and cache locality
    **priority-queue**: Randomized spreading weighted by health and tokens

    Args:
        strategy_name: Strategy name or enum member. Case-insensitive.
        cursor: Shared round-robin cursor (sticky and round-robin)
        rng: Random source (priority-queue)

    Raises:
        ValueError: If strategy_name is not recognized.

    Example:
        ```python
        strategy = create_strategy("hybrid")
        index = strategy.select(accounts, SelectionContext(token_tracker))
        ```
    """
    strategies: dict[AccountSelectionStrategy, Callable[[], BaseSelectionStrategy]] = {
        AccountSelectionStrategy.STICKY: lambda: StickyStrategy(cursor),
        AccountSelectionStrategy.ROUND_ROBIN: lambda: RoundRobinStrategy(cursor),
        AccountSelectionStrategy.HYBRID: HybridStrategy,
        AccountSelectionStrategy.PRIORITY_QUEUE: lambda: PriorityQueueStrategy(rng),
    }

    if isinstance(strategy_name, AccountSelectionStrategy):
        key = strategy_name
    else:
        try:
            key = AccountSelectionStrategy(strategy_name.lower())
        except ValueError:
            available = [f"'{s.value}'" for s in strategies]
            raise ValueError(
                f"Unknown selection strategy: {strategy_name}. "
                f"Available strategies: {available}"
            ) from None

    logger.debug(f"Creating {key.value} selection strategy")
    return strategies[key]()


__all__ = [
    "DEFAULT_MIN_HEALTH_SCORE",
    "STICKINESS_BONUS",
    "SWITCH_THRESHOLD",
    "BaseSelectionStrategy",
    "HybridStrategy",
    "PriorityQueueStrategy",
    "RoundRobinCursor",
    "RoundRobinStrategy",
    "SelectionCandidate",
    "SelectionContext",
    "StickyStrategy",
    "calculate_hybrid_score",
    "create_strategy",
    "select_hybrid_account",
    "select_priority_queue_account",
    "select_sticky_account",
    "sort_by_lru_with_health",
]
