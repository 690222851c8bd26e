# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `account_scheduler_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    To prevent label cardinality explosion, use only:
    - `quota_group` - Quota group (categorical: claude, gemini-pro)
    - `strategy` - Selection strategy (enum: sticky, hybrid, ...)
    - `outcome` - Dispatch outcome (enum: success, rate_limited, failure)
    - `switched` - Boolean as string (true, false)
    - `account` - Account index (bounded by the pool size)

    NEVER use:
    - `email` - Personal data, and unbounded across pool changes
    - `timestamp` - Unique per second (unbounded!)

Usage:
    >>> from account_scheduler.observability.constants import SELECTIONS_TOTAL
    >>> print(SELECTIONS_TOTAL)
    'account_scheduler_selections_total'
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "account_scheduler"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Selection Metrics (scheduler/orchestrator.py)
# =============================================================================

SELECTIONS_TOTAL = f"{METRIC_PREFIX}_selections_total"
"""Total accounts handed out to callers."""

NO_ACCOUNT_TOTAL = f"{METRIC_PREFIX}_no_account_total"
"""Total selection rounds in which every account was excluded."""

WAIT_TIMEOUTS_TOTAL = f"{METRIC_PREFIX}_wait_timeouts_total"
"""Total selections abandoned after exceeding the wait bound."""

WAIT_SECONDS = f"{METRIC_PREFIX}_wait_seconds"
"""Time spent waiting for an account to become available (histogram)."""


# =============================================================================
# Outcome Metrics
# =============================================================================

OUTCOMES_TOTAL = f"{METRIC_PREFIX}_outcomes_total"
"""Total dispatch outcomes reported back to the scheduler."""


# =============================================================================
# Quota Guard Metrics (quota/guard.py)
# =============================================================================

PREFLIGHT_SWITCHES_TOTAL = f"{METRIC_PREFIX}_preflight_switches_total"
"""Total accounts demoted by the quota preflight check."""

QUOTA_FETCH_FAILURES_TOTAL = f"{METRIC_PREFIX}_quota_fetch_failures_total"
"""Total quota lookups that failed and degraded to no data."""

QUOTA_CACHE_HITS_TOTAL = f"{METRIC_PREFIX}_quota_cache_hits_total"
"""Total preflight checks served from the quota cache."""

QUOTA_CACHE_MISSES_TOTAL = f"{METRIC_PREFIX}_quota_cache_misses_total"
"""Total preflight checks that had to fetch quota."""


# =============================================================================
# Account State Gauges
# =============================================================================

ACCOUNT_HEALTH_SCORE = f"{METRIC_PREFIX}_account_health_score"
"""Health score of each account after its last reported outcome."""

ACCOUNT_TOKENS = f"{METRIC_PREFIX}_account_tokens"
"""Token bucket balance of each account after its last selection."""


# =============================================================================
# Histogram Buckets
# =============================================================================

WAIT_BUCKETS: list[float] = [
    0.5,
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    120.0,
    300.0,
    900.0,
    3600.0,
]
"""Buckets for wait durations, from grace delays up to an hour."""


__all__ = [
    "ACCOUNT_HEALTH_SCORE",
    "ACCOUNT_TOKENS",
    "METRIC_PREFIX",
    "NO_ACCOUNT_TOTAL",
    "OUTCOMES_TOTAL",
    "PREFLIGHT_SWITCHES_TOTAL",
    "QUOTA_CACHE_HITS_TOTAL",
    "QUOTA_CACHE_MISSES_TOTAL",
    "QUOTA_FETCH_FAILURES_TOTAL",
    "SELECTIONS_TOTAL",
    "WAIT_BUCKETS",
    "WAIT_SECONDS",
    "WAIT_TIMEOUTS_TOTAL",
]
