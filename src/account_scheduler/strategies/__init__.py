# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Account selection strategies."""

from .selection import (
    DEFAULT_MIN_HEALTH_SCORE,
    STICKINESS_BONUS,
    SWITCH_THRESHOLD,
    BaseSelectionStrategy,
    HybridStrategy,
    PriorityQueueStrategy,
    RoundRobinCursor,
    RoundRobinStrategy,
    SelectionCandidate,
    SelectionContext,
    StickyStrategy,
    calculate_hybrid_score,
    create_strategy,
    select_hybrid_account,
    select_priority_queue_account,
    select_sticky_account,
    sort_by_lru_with_health,
)

__all__ = [
    "DEFAULT_MIN_HEALTH_SCORE",
    "STICKINESS_BONUS",
    "SWITCH_THRESHOLD",
    # Strategy objects
    "BaseSelectionStrategy",
    "HybridStrategy",
    "PriorityQueueStrategy",
    "RoundRobinCursor",
    "RoundRobinStrategy",
    "SelectionCandidate",
    "SelectionContext",
    "StickyStrategy",
    # Pure selection functions
    "calculate_hybrid_score",
    "create_strategy",
    "select_hybrid_account",
    "select_priority_queue_account",
    "select_sticky_account",
    "sort_by_lru_with_health",
]
