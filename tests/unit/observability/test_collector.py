"""
Unit tests for the observability collector module.

Tests cover:
- MetricsCollector: dict-based counters, gauges and histograms
- Prometheus mirroring into an isolated CollectorRegistry
- Label cardinality protection
- Gauge removal for forgotten accounts
"""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from account_scheduler.observability.collector import (
    METRIC_DEFINITIONS,
    MetricDefinition,
    MetricsCollector,
)
from account_scheduler.observability.constants import (
    ACCOUNT_HEALTH_SCORE,
    NO_ACCOUNT_TOTAL,
    SELECTIONS_TOTAL,
    WAIT_SECONDS,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def collector(registry) -> MetricsCollector:
    return MetricsCollector(registry=registry)


@pytest.fixture
def dict_collector() -> MetricsCollector:
    return MetricsCollector(enable_prometheus=False)


# =============================================================================
# MetricDefinition Tests
# =============================================================================


class TestMetricDefinitions:
    """Test the built-in metric schema."""

    def test_definition_defaults(self) -> None:
        defn = MetricDefinition("x_total", "counter", "X")
        assert defn.label_names == ()
        assert defn.buckets is None

    def test_all_names_prefixed(self) -> None:
        for name, defn in METRIC_DEFINITIONS.items():
            assert name.startswith("account_scheduler_")
            assert defn.name == name

    def test_counters_end_with_total(self) -> None:
        for defn in METRIC_DEFINITIONS.values():
            if defn.metric_type == "counter":
                assert defn.name.endswith("_total")

    def test_no_email_labels(self) -> None:
        for defn in METRIC_DEFINITIONS.values():
            assert "email" not in defn.label_names


# =============================================================================
# Dict Metrics
# =============================================================================


class TestCounters:
    """Test counter operations."""

    def test_inc_counter(self, dict_collector) -> None:
        labels = {"quota_group": "claude"}
        dict_collector.inc_counter(NO_ACCOUNT_TOTAL, labels=labels)
        dict_collector.inc_counter(NO_ACCOUNT_TOTAL, 2, labels=labels)
        assert dict_collector.get_counter(NO_ACCOUNT_TOTAL, labels) == 3

    def test_missing_counter_is_zero(self, dict_collector) -> None:
        assert dict_collector.get_counter(NO_ACCOUNT_TOTAL) == 0

    def test_negative_increment_rejected(self, dict_collector) -> None:
        with pytest.raises(ValueError):
            dict_collector.inc_counter(NO_ACCOUNT_TOTAL, -1)

    def test_label_key_is_order_independent(self, dict_collector) -> None:
        dict_collector.inc_counter(
            SELECTIONS_TOTAL, labels={"strategy": "hybrid", "quota_group": "claude"}
        )
        counters = dict_collector.get_metrics()["counters"]
        assert counters[SELECTIONS_TOTAL] == {"quota_group=claude,strategy=hybrid": 1}


class TestGauges:
    """Test gauge operations."""

    def test_set_gauge_overwrites(self, dict_collector) -> None:
        dict_collector.set_gauge(ACCOUNT_HEALTH_SCORE, 70, {"account": "0"})
        dict_collector.set_gauge(ACCOUNT_HEALTH_SCORE, 60, {"account": "0"})
        gauges = dict_collector.get_metrics()["gauges"]
        assert gauges[ACCOUNT_HEALTH_SCORE] == {"account=0": 60}

    def test_remove_gauge(self, dict_collector) -> None:
        dict_collector.set_gauge(ACCOUNT_HEALTH_SCORE, 70, {"account": "0"})
        dict_collector.set_gauge(ACCOUNT_HEALTH_SCORE, 80, {"account": "1"})
        dict_collector.remove_gauge(ACCOUNT_HEALTH_SCORE, {"account": "0"})
        gauges = dict_collector.get_metrics()["gauges"]
        assert gauges[ACCOUNT_HEALTH_SCORE] == {"account=1": 80}

    def test_remove_unknown_gauge_is_noop(self, collector) -> None:
        collector.remove_gauge(ACCOUNT_HEALTH_SCORE, {"account": "9"})


class TestHistograms:
    """Test histogram operations."""

    def test_summary(self, dict_collector) -> None:
        for value in (1.0, 2.0, 6.0):
            dict_collector.observe_histogram(WAIT_SECONDS, value, {"quota_group": "g"})

        summary = dict_collector.get_metrics()["histograms"][WAIT_SECONDS]["quota_group=g"]
        assert summary == {"count": 3, "sum": 9.0, "avg": 3.0, "min": 1.0, "max": 6.0}

    def test_observation_buffer_is_bounded(self, dict_collector) -> None:
        for i in range(10001):
            dict_collector.observe_histogram(WAIT_SECONDS, float(i))

        summary = dict_collector.get_metrics()["histograms"][WAIT_SECONDS][""]
        assert summary["count"] == 5001
        assert summary["max"] == 10000.0


class TestCardinality:
    """Test label cardinality protection."""

    def test_new_combinations_dropped_past_limit(self, dict_collector, caplog) -> None:
        dict_collector.MAX_LABEL_COMBINATIONS = 2
        for group in ("a", "b", "c"):
            dict_collector.inc_counter(NO_ACCOUNT_TOTAL, labels={"quota_group": group})

        counters = dict_collector.get_metrics()["counters"][NO_ACCOUNT_TOTAL]
        assert set(counters) == {"quota_group=a", "quota_group=b"}
        assert "Cardinality limit" in caplog.text

    def test_existing_combinations_still_counted(self, dict_collector) -> None:
        dict_collector.MAX_LABEL_COMBINATIONS = 1
        labels = {"quota_group": "a"}
        dict_collector.inc_counter(NO_ACCOUNT_TOTAL, labels=labels)
        dict_collector.inc_counter(NO_ACCOUNT_TOTAL, labels=labels)
        assert dict_collector.get_counter(NO_ACCOUNT_TOTAL, labels) == 2


class TestReset:
    def test_reset_clears_everything(self, dict_collector) -> None:
        dict_collector.inc_counter(NO_ACCOUNT_TOTAL)
        dict_collector.set_gauge(ACCOUNT_HEALTH_SCORE, 1.0)
        dict_collector.observe_histogram(WAIT_SECONDS, 1.0)
        dict_collector.reset()
        assert dict_collector.get_metrics() == {
            "counters": {},
            "gauges": {},
            "histograms": {},
        }


# =============================================================================
# Prometheus Integration
# =============================================================================


class TestPrometheus:
    """Test mirroring into a Prometheus registry."""

    def test_properties(self, collector, registry, dict_collector) -> None:
        assert collector.prometheus_enabled is True
        assert collector.registry is registry
        assert dict_collector.prometheus_enabled is False

    def test_counter_mirrored(self, collector, registry) -> None:
        labels = {"quota_group": "claude", "strategy": "hybrid", "switched": "false"}
        collector.inc_counter(SELECTIONS_TOTAL, labels=labels)
        collector.inc_counter(SELECTIONS_TOTAL, labels=labels)
        assert registry.get_sample_value(SELECTIONS_TOTAL, labels) == 2.0

    def test_gauge_mirrored_and_removed(self, collector, registry) -> None:
        collector.set_gauge(ACCOUNT_HEALTH_SCORE, 65, {"account": "1"})
        assert registry.get_sample_value(ACCOUNT_HEALTH_SCORE, {"account": "1"}) == 65

        collector.remove_gauge(ACCOUNT_HEALTH_SCORE, {"account": "1"})
        assert registry.get_sample_value(ACCOUNT_HEALTH_SCORE, {"account": "1"}) is None

    def test_histogram_mirrored(self, collector, registry) -> None:
        collector.observe_histogram(WAIT_SECONDS, 3.0, {"quota_group": "claude"})
        labels = {"quota_group": "claude"}
        assert registry.get_sample_value(f"{WAIT_SECONDS}_count", labels) == 1.0
        assert registry.get_sample_value(f"{WAIT_SECONDS}_sum", labels) == 3.0

    def test_dynamic_metric_without_definition(self, collector, registry) -> None:
        collector.inc_counter("account_scheduler_custom_total")
        assert registry.get_sample_value("account_scheduler_custom_total") == 1.0

    def test_duplicate_registration_degrades_to_dict_only(self, registry, caplog) -> None:
        first = MetricsCollector(registry=registry)
        second = MetricsCollector(registry=registry)
        first.inc_counter(NO_ACCOUNT_TOTAL, labels={"quota_group": "g"})
        second.inc_counter(NO_ACCOUNT_TOTAL, labels={"quota_group": "g"})

        assert second.get_counter(NO_ACCOUNT_TOTAL, {"quota_group": "g"}) == 1
        assert "Failed to create Prometheus counter" in caplog.text
        assert registry.get_sample_value(NO_ACCOUNT_TOTAL, {"quota_group": "g"}) == 1.0
