# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the Account Scheduler.

Classes:
    MetricsCollector: Dict-backed metrics mirrored to Prometheus.
    MetricDefinition: Schema of a predefined metric.

Constants:
    All metric name constants from the constants module.
"""

from .collector import METRIC_DEFINITIONS, MetricDefinition, MetricsCollector
from .constants import (
    ACCOUNT_HEALTH_SCORE,
    ACCOUNT_TOKENS,
    METRIC_PREFIX,
    NO_ACCOUNT_TOTAL,
    OUTCOMES_TOTAL,
    PREFLIGHT_SWITCHES_TOTAL,
    QUOTA_CACHE_HITS_TOTAL,
    QUOTA_CACHE_MISSES_TOTAL,
    QUOTA_FETCH_FAILURES_TOTAL,
    SELECTIONS_TOTAL,
    WAIT_BUCKETS,
    WAIT_SECONDS,
    WAIT_TIMEOUTS_TOTAL,
)

__all__ = [
    # Gauges
    "ACCOUNT_HEALTH_SCORE",
    "ACCOUNT_TOKENS",
    "METRIC_DEFINITIONS",
    "METRIC_PREFIX",
    "NO_ACCOUNT_TOTAL",
    "OUTCOMES_TOTAL",
    # Quota guard
    "PREFLIGHT_SWITCHES_TOTAL",
    "QUOTA_CACHE_HITS_TOTAL",
    "QUOTA_CACHE_MISSES_TOTAL",
    "QUOTA_FETCH_FAILURES_TOTAL",
    # Selection
    "SELECTIONS_TOTAL",
    "WAIT_BUCKETS",
    "WAIT_SECONDS",
    "WAIT_TIMEOUTS_TOTAL",
    "MetricDefinition",
    # Collector
    "MetricsCollector",
]
