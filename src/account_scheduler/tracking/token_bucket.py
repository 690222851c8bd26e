# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-account client-side token buckets.

Each account owns an independent bucket that regenerates continuously, so a
burst against one account cannot starve another. Consuming a token is the
only operation in the scheduler that reserves capacity.
"""

import time
from dataclasses import dataclass

from ..protocols import Clock
from ..config import TokenBucketConfig

_SECONDS_PER_MINUTE = 60.0


@dataclass
class TokenBucketState:
    """Stored balance of one account as of its last mutation."""

    tokens: float
    last_updated: float


class TokenBucketTracker:
    """
    Client-side rate limiting using the token bucket algorithm.

    Helps avoid upstream 429s by tracking the "cost" of requests per account.
    Buckets are created lazily at ``config.initial_tokens``.

    Example:
        >>> tracker = TokenBucketTracker(TokenBucketConfig(initial_tokens=5.0))
        >>> tracker.consume(0, 10)
        False
        >>> tracker.get_tokens(0)
        5.0
    """

    def __init__(
        self,
        config: TokenBucketConfig | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.config = config or TokenBucketConfig()
        self._clock = clock
        self._buckets: dict[int, TokenBucketState] = {}

    def get_tokens(self, index: int) -> float:
        """Get the current balance for an account, applying regeneration."""
        state = self._buckets.get(index)
        if state is None:
            return self.config.initial_tokens

        minutes = max(0.0, self._clock() - state.last_updated) / _SECONDS_PER_MINUTE
        regenerated = minutes * self.config.regeneration_rate_per_minute
        return min(self.config.max_tokens, state.tokens + regenerated)

    def has_tokens(self, index: int, cost: float = 1) -> bool:
        """Check if the account has enough tokens for a request."""
        return self.get_tokens(index) >= cost

    def consume(self, index: int, cost: float = 1) -> bool:
        """
        Consume tokens for a request.

        Returns:
            True if the request is admitted, False (with no state change)
            if the balance is insufficient.
        """
        current = self.get_tokens(index)
        if current < cost:
            return False

        self._buckets[index] = TokenBucketState(
            tokens=current - cost, last_updated=self._clock()
        )
        return True

    def refund(self, index: int, amount: float = 1) -> None:
        """Return tokens for an admitted request that was never sent."""
        current = self.get_tokens(index)
        self._buckets[index] = TokenBucketState(
            tokens=min(self.config.max_tokens, current + amount),
            last_updated=self._clock(),
        )

    def get_max_tokens(self) -> float:
        return self.config.max_tokens

    def seconds_until_tokens(self, index: int, cost: float = 1) -> float:
        """Seconds until the account regenerates enough tokens for cost.

        Returns ``math.inf`` when the bucket does not regenerate.
        """
        missing = cost - self.get_tokens(index)
        if missing <= 0:
            return 0.0
        rate = self.config.regeneration_rate_per_minute
        if rate <= 0:
            return float("inf")
        return missing / rate * _SECONDS_PER_MINUTE

    def reset(self, index: int) -> None:
        """Drop the bucket for an account (e.g. after removal)."""
        self._buckets.pop(index, None)


__all__ = ["TokenBucketState", "TokenBucketTracker"]
