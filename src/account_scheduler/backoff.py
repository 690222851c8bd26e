# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Jitter and backoff helpers.

Randomized delays desynchronize callers that retry at the same moment, so a
freshly reset account is not hit by every waiting request at once. Every
function takes an optional ``random.Random`` so tests can seed it; the module
level generator is used otherwise.
"""

import math
import random


def add_jitter(
    base: float, jitter_factor: float = 0.3, rng: random.Random | None = None
) -> int:
    """
    Add symmetric random jitter to a delay.

    Args:
        base: Base delay (any unit, typically milliseconds)
        jitter_factor: Fraction of base to vary by (0.3 = ±30%)
        rng: Optional random source

    Returns:
        round(base ± base * jitter_factor), never negative
    """
    rand = rng or random
    jitter_range = base * jitter_factor
    jitter = (rand.random() * 2 - 1) * jitter_range  # noqa: S311  # nosec B311
    return max(0, _round_half_up(base + jitter))


def random_delay(
    min_delay: float, max_delay: float, rng: random.Random | None = None
) -> int:
    """Return a rounded uniform delay in [min_delay, max_delay]."""
    rand = rng or random
    return _round_half_up(
        min_delay + rand.random() * (max_delay - min_delay)  # noqa: S311  # nosec B311
    )


def exponential_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter_factor: float = 0.3,
    rng: random.Random | None = None,
) -> float:
    """
    Calculate an exponential backoff delay in seconds with jitter.

    Uses base_delay * 2^attempt capped at max_delay, then applies jitter.
    The jittered value never exceeds max_delay.
    """
    delay = min(base_delay * (2 ** max(0, attempt)), max_delay)
    jittered_ms = add_jitter(delay * 1000, jitter_factor, rng)
    return min(jittered_ms / 1000, max_delay)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


__all__ = ["add_jitter", "exponential_backoff", "random_delay"]
