# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Account Scheduler - Multi-account request routing for rate-limited APIs.

This library decides, per outbound request, which of several upstream
accounts to use, and tracks each account's health and capacity over time so
that requests avoid accounts that are about to be rejected.

Key Features:
    - Per-account health scores with passive recovery
    - Client-side token buckets per account
    - Sticky, round-robin, hybrid and priority-queue selection strategies
    - TTL-cached preflight quota checks with cooldowns
    - Bounded waiting with jittered polling when every account is excluded

Quick Start:
    >>> from account_scheduler import (
    ...     AccountRecord, DispatchOutcome, InMemoryAccountStore, create_scheduler,
    ... )
    >>>
    >>> store = InMemoryAccountStore([AccountRecord(index=0), AccountRecord(index=1)])
    >>> scheduler = create_scheduler(store, {"account_selection_strategy": "hybrid"})
    >>> selection = await scheduler.select_account("claude")
    >>> scheduler.report_outcome(selection.index, DispatchOutcome.success(), "claude")

Main Exports:
    - AccountScheduler, create_scheduler: Core scheduling components
    - SchedulerConfig: Configuration options
    - AccountStoreProtocol, InMemoryAccountStore: Account storage
    - HealthScoreTracker, TokenBucketTracker: Per-account trackers

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backoff import add_jitter, exponential_backoff, random_delay
from .config import (
    AccountSelectionStrategy,
    HealthScoreConfig,
    QuotaGuardConfig,
    SchedulerConfig,
    SchedulingMode,
    TokenBucketConfig,
)
from .exceptions import (
    ConfigurationError,
    NoAccountAvailableError,
    QuotaFetchFailedError,
    SchedulerError,
    WaitTimeoutExceededError,
)
from .protocols import AccountStoreProtocol, Clock, QuotaFetcher
from .quota import (
    QuotaGuardCache,
    calculate_min_remaining_percent,
    format_wait_time,
    mask_email,
    preflight_quota_check,
)
from .scheduler import AccountScheduler, create_scheduler
from .storage import InMemoryAccountStore
from .strategies import (
    BaseSelectionStrategy,
    create_strategy,
    select_hybrid_account,
    select_priority_queue_account,
    sort_by_lru_with_health,
)
from .tracking import HealthScoreTracker, TokenBucketTracker
from .types import (
    AccountRecord,
    AccountSelection,
    AccountWithMetrics,
    DispatchOutcome,
    OutcomeKind,
    PreflightResult,
    QuotaGroupSummary,
    QuotaSummary,
)

__all__ = [
    # Scheduler
    "AccountScheduler",
    "AccountSelection",
    "AccountSelectionStrategy",
    # Types
    "AccountRecord",
    "AccountStoreProtocol",
    "AccountWithMetrics",
    "BaseSelectionStrategy",
    "Clock",
    # Exceptions
    "ConfigurationError",
    "DispatchOutcome",
    # Config
    "HealthScoreConfig",
    # Trackers
    "HealthScoreTracker",
    "InMemoryAccountStore",
    "NoAccountAvailableError",
    "OutcomeKind",
    "PreflightResult",
    "QuotaFetchFailedError",
    "QuotaFetcher",
    "QuotaGroupSummary",
    "QuotaGuardCache",
    "QuotaGuardConfig",
    "QuotaSummary",
    "SchedulerConfig",
    "SchedulerError",
    "SchedulingMode",
    "TokenBucketConfig",
    "TokenBucketTracker",
    "WaitTimeoutExceededError",
    # Utilities
    "add_jitter",
    "calculate_min_remaining_percent",
    "create_scheduler",
    "create_strategy",
    "exponential_backoff",
    "format_wait_time",
    "mask_email",
    "preflight_quota_check",
    "random_delay",
    "select_hybrid_account",
    "select_priority_queue_account",
    "sort_by_lru_with_health",
]
