# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-account health scores.

A health score is a decayed wellness indicator: penalized on rate limits and
failures, rewarded on success, and recovering passively while an account
rests. Recovery is computed lazily on read from the time since the last
recorded event, so no background task is needed.
"""

import logging
import math
import time
from dataclasses import dataclass

from ..protocols import Clock
from ..config import HealthScoreConfig

logger = logging.getLogger(__name__)

_SECONDS_PER_HOUR = 3600.0


@dataclass
class HealthScoreState:
    """Stored health of one account as of its last recorded event."""

    score: float
    last_updated: float
    last_success: float = 0.0
    consecutive_failures: int = 0


@dataclass(frozen=True)
class HealthSnapshot:
    """Observability view of one account's health."""

    score: float
    consecutive_failures: int


class HealthScoreTracker:
    """
    Tracks health scores for accounts.

    Higher score = healthier account = preferred for selection. State is
    created lazily at ``config.initial`` the first time an account records an
    event; unknown accounts report the initial score.

    All methods are synchronous, so concurrent asyncio tasks never observe a
    half-applied update.
    """

    def __init__(
        self,
        config: HealthScoreConfig | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.config = config or HealthScoreConfig()
        self._clock = clock
        self._scores: dict[int, HealthScoreState] = {}

    def get_score(self, index: int) -> float:
        """Get the current score for an account, applying time-based recovery."""
        state = self._scores.get(index)
        if state is None:
            return self.config.initial

        hours = max(0.0, self._clock() - state.last_updated) / _SECONDS_PER_HOUR
        recovered = math.floor(hours * self.config.recovery_rate_per_hour)
        return min(self.config.max_score, state.score + recovered)

    def record_success(self, index: int) -> None:
        """Record a successful request."""
        now = self._clock()
        current = self.get_score(index)
        self._scores[index] = HealthScoreState(
            score=min(self.config.max_score, current + self.config.success_reward),
            last_updated=now,
            last_success=now,
            consecutive_failures=0,
        )

    def record_rate_limit(self, index: int) -> None:
        """Record a rate limit hit (moderate penalty)."""
        self._record_penalty(index, self.config.rate_limit_penalty)

    def record_failure(self, index: int) -> None:
        """Record an auth/network failure (larger penalty)."""
        self._record_penalty(index, self.config.failure_penalty)

    def _record_penalty(self, index: int, penalty: float) -> None:
        previous = self._scores.get(index)
        current = self.get_score(index)
        self._scores[index] = HealthScoreState(
            score=max(0.0, current + penalty),
            last_updated=self._clock(),
            last_success=previous.last_success if previous else 0.0,
            consecutive_failures=(previous.consecutive_failures if previous else 0)
            + 1,
        )
        logger.debug(
            f"Account {index} health penalized by {penalty} "
            f"(score: {self._scores[index].score})"
        )

    def is_usable(self, index: int) -> bool:
        """Check if the account is healthy enough to use."""
        return self.get_score(index) >= self.config.min_usable

    def get_consecutive_failures(self, index: int) -> int:
        state = self._scores.get(index)
        return state.consecutive_failures if state else 0

    def get_last_success(self, index: int) -> float | None:
        state = self._scores.get(index)
        return state.last_success if state and state.last_success else None

    def reset(self, index: int) -> None:
        """Drop all health state for an account (e.g. after removal)."""
        self._scores.pop(index, None)

    def get_snapshot(self) -> dict[int, HealthSnapshot]:
        """Current (recovery-applied) health of every tracked account."""
        return {
            index: HealthSnapshot(
                score=self.get_score(index),
                consecutive_failures=self.get_consecutive_failures(index),
            )
            for index in self._scores
        }

    def __len__(self) -> int:
        return len(self._scores)


__all__ = ["HealthScoreState", "HealthScoreTracker", "HealthSnapshot"]
