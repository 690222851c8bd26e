# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metrics collector supporting both dict-based and Prometheus metrics.

Features:
    1. Thread-safe counter/gauge/histogram operations
    2. Prometheus metric registration into a configurable registry
    3. Dict-based snapshot for JSON export and tests
    4. Label cardinality protection (max 1000 unique combinations per metric)

Usage:
    >>> from prometheus_client import CollectorRegistry
    >>> collector = MetricsCollector(registry=CollectorRegistry())
    >>> collector.inc_counter('account_scheduler_selections_total',
    ...                       labels={'quota_group': 'claude'})
    >>> metrics = collector.get_metrics()

Each AccountScheduler owns one collector. Pass the same Prometheus-enabled
collector to several schedulers to aggregate them in one registry.
"""

import contextlib
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, ClassVar

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .constants import (
    ACCOUNT_HEALTH_SCORE,
    ACCOUNT_TOKENS,
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

logger = logging.getLogger(__name__)

_MAX_HISTOGRAM_OBSERVATIONS = 10000


@dataclass
class MetricDefinition:
    """
    Definition for a metric that can be instantiated.

    This dataclass defines the schema for metrics, including their type,
    description, labels, and histogram buckets.
    """

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    # === Selection ===
    SELECTIONS_TOTAL: MetricDefinition(
        SELECTIONS_TOTAL,
        "counter",
        "Total accounts selected",
        ("quota_group", "strategy", "switched"),
    ),
    NO_ACCOUNT_TOTAL: MetricDefinition(
        NO_ACCOUNT_TOTAL,
        "counter",
        "Total selection rounds with no available account",
        ("quota_group",),
    ),
    WAIT_TIMEOUTS_TOTAL: MetricDefinition(
        WAIT_TIMEOUTS_TOTAL,
        "counter",
        "Total selections abandoned after the wait bound",
        ("quota_group",),
    ),
    WAIT_SECONDS: MetricDefinition(
        WAIT_SECONDS,
        "histogram",
        "Time spent waiting for an account",
        ("quota_group",),
        buckets=WAIT_BUCKETS,
    ),
    # === Outcomes ===
    OUTCOMES_TOTAL: MetricDefinition(
        OUTCOMES_TOTAL,
        "counter",
        "Total dispatch outcomes reported",
        ("quota_group", "outcome"),
    ),
    # === Quota guard ===
    PREFLIGHT_SWITCHES_TOTAL: MetricDefinition(
        PREFLIGHT_SWITCHES_TOTAL,
        "counter",
        "Total accounts demoted by the quota preflight",
        ("quota_group",),
    ),
    QUOTA_FETCH_FAILURES_TOTAL: MetricDefinition(
        QUOTA_FETCH_FAILURES_TOTAL,
        "counter",
        "Total failed quota lookups",
        (),
    ),
    QUOTA_CACHE_HITS_TOTAL: MetricDefinition(
        QUOTA_CACHE_HITS_TOTAL,
        "counter",
        "Total quota cache hits",
        (),
    ),
    QUOTA_CACHE_MISSES_TOTAL: MetricDefinition(
        QUOTA_CACHE_MISSES_TOTAL,
        "counter",
        "Total quota cache misses",
        (),
    ),
    # === Gauges ===
    ACCOUNT_HEALTH_SCORE: MetricDefinition(
        ACCOUNT_HEALTH_SCORE,
        "gauge",
        "Account health score",
        ("account",),
    ),
    ACCOUNT_TOKENS: MetricDefinition(
        ACCOUNT_TOKENS,
        "gauge",
        "Account token bucket balance",
        ("account",),
    ),
}


class MetricsCollector:
    """
    Metrics collector keeping dict-based metrics and mirroring them to Prometheus.

    Thread Safety:
        All dict operations use an RLock. The scheduler itself is single-loop
        asyncio, but exporters may read from another thread.

    Cardinality Protection:
        A maximum of MAX_LABEL_COMBINATIONS unique label combinations are
        tracked per metric; further combinations are dropped with a warning.

    Example:
        >>> collector = MetricsCollector(enable_prometheus=False)
        >>> collector.inc_counter('account_scheduler_no_account_total',
        ...                       labels={'quota_group': 'claude'})
        >>> collector.get_metrics()["counters"]
        {'account_scheduler_no_account_total': {'quota_group=claude': 1}}
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """
        Initialize the metrics collector.

        Args:
            enable_prometheus: Whether to mirror metrics to Prometheus
            registry: Prometheus registry (defaults to the global REGISTRY)
        """
        self._enable_prometheus = enable_prometheus
        self._registry = registry if registry is not None else REGISTRY

        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )

        self._lock = threading.RLock()

        self._prom_metrics: dict[str, Any] = {}
        self._label_combinations: dict[str, set[str]] = defaultdict(set)

        logger.debug(
            f"MetricsCollector initialized "
            f"(prometheus={'enabled' if self._enable_prometheus else 'disabled'})"
        )

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        """Convert labels dict to a stable string key."""
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _check_cardinality(self, name: str, label_key: str) -> bool:
        """
        Check if adding this label combination would exceed cardinality limit.

        Returns:
            True if the label combination is allowed, False otherwise
        """
        if label_key in self._label_combinations[name]:
            return True
        if len(self._label_combinations[name]) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                f"for metric {name}. Dropping label combination: {label_key}"
            )
            return False
        self._label_combinations[name].add(label_key)
        return True

    def _get_or_create_prom_metric(self, name: str, metric_type: str) -> Any | None:
        """Get or create the Prometheus metric backing a dict metric."""
        if not self._enable_prometheus:
            return None

        if name not in self._prom_metrics:
            defn = METRIC_DEFINITIONS.get(name)
            if defn is None or defn.metric_type != metric_type:
                defn = MetricDefinition(name, metric_type, f"Dynamic {metric_type}: {name}")

            try:
                if metric_type == "counter":
                    metric: Any = Counter(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                elif metric_type == "gauge":
                    metric = Gauge(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                else:
                    metric = Histogram(
                        name,
                        defn.description,
                        list(defn.label_names),
                        buckets=defn.buckets or WAIT_BUCKETS,
                        registry=self._registry,
                    )
            except ValueError as e:
                # Duplicate registration in a shared registry
                logger.warning(f"Failed to create Prometheus {metric_type} {name}: {e}")
                return None
            self._prom_metrics[name] = metric

        return self._prom_metrics[name]

    def _apply_prom(
        self,
        name: str,
        metric_type: str,
        method: str,
        value: float,
        labels: dict[str, str] | None,
    ) -> None:
        metric = self._get_or_create_prom_metric(name, metric_type)
        if metric is None:
            return
        try:
            target = metric.labels(**labels) if labels else metric
            getattr(target, method)(value)
        except ValueError as e:
            logger.debug(f"Prometheus {metric_type} update failed for {name}: {e}")

    # === Counter Operations ===

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._counters[name][label_key] += value

        self._apply_prom(name, "counter", "inc", value, labels)

    # === Gauge Operations ===

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to a specific value."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._gauges[name][label_key] = value

        self._apply_prom(name, "gauge", "set", value, labels)

    def remove_gauge(self, name: str, labels: dict[str, str] | None = None) -> None:
        """Drop one label combination of a gauge (e.g. a removed account)."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            self._gauges.get(name, {}).pop(label_key, None)
            self._label_combinations.get(name, set()).discard(label_key)

        metric = self._prom_metrics.get(name)
        defn = METRIC_DEFINITIONS.get(name)
        if metric is not None and defn is not None and labels:
            with contextlib.suppress(KeyError):
                metric.remove(*(labels[k] for k in defn.label_names))

    # === Histogram Operations ===

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Record an observation in a histogram."""
        label_key = self._labels_to_key(labels)
        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            observations = self._histograms[name][label_key]
            observations.append(value)
            if len(observations) > _MAX_HISTOGRAM_OBSERVATIONS:
                del observations[: _MAX_HISTOGRAM_OBSERVATIONS // 2]

        self._apply_prom(name, "histogram", "observe", value, labels)

    # === Snapshot Operations ===

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters.get(name, {}).get(self._labels_to_key(labels), 0)

    def get_metrics(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Returns a dict suitable for JSON serialization with structure:
        {
            "counters": {"metric_name": {"label_key": value, ...}, ...},
            "gauges": {"metric_name": {"label_key": value, ...}, ...},
            "histograms": {"metric_name": {"label_key": {...}, ...}, ...}
        }
        """
        with self._lock:
            counters = {
                name: dict(label_values)
                for name, label_values in self._counters.items()
            }
            gauges = {
                name: dict(label_values) for name, label_values in self._gauges.items()
            }

            histograms: dict[str, dict[str, dict[str, Any]]] = {}
            for name, label_values in self._histograms.items():
                histograms[name] = {}
                for label_key, observations in label_values.items():
                    if observations:
                        histograms[name][label_key] = {
                            "count": len(observations),
                            "sum": sum(observations),
                            "avg": sum(observations) / len(observations),
                            "min": min(observations),
                            "max": max(observations),
                        }

        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": histograms,
        }

    def reset(self) -> None:
        """Reset all dict metrics. Prometheus series are left registered."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._label_combinations.clear()

        logger.debug("Metrics collector reset")

    @property
    def prometheus_enabled(self) -> bool:
        """Check if Prometheus metrics are enabled."""
        return self._enable_prometheus

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry


__all__ = [
    "METRIC_DEFINITIONS",
    "MetricDefinition",
    "MetricsCollector",
]
