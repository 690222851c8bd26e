# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Per-account state trackers with lazy time-based decay."""

from .health import HealthScoreState, HealthScoreTracker, HealthSnapshot
from .token_bucket import TokenBucketState, TokenBucketTracker

__all__ = [
    "HealthScoreState",
    "HealthScoreTracker",
    "HealthSnapshot",
    "TokenBucketState",
    "TokenBucketTracker",
]
