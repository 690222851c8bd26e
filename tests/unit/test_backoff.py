"""Unit tests for jitter and backoff helpers."""

import random

import pytest

from account_scheduler.backoff import add_jitter, exponential_backoff, random_delay


def fixed_rng(value: float) -> random.Random:
    """Random source whose random() always returns value."""
    rng = random.Random()
    rng.random = lambda: value  # type: ignore[method-assign]
    return rng


class TestAddJitter:
    """Tests for add_jitter."""

    def test_stays_within_jitter_range(self, rng) -> None:
        for _ in range(500):
            value = add_jitter(1000, 0.3, rng)
            assert 700 <= value <= 1300
            assert isinstance(value, int)

    def test_zero_factor_returns_base(self, rng) -> None:
        assert add_jitter(1000, 0, rng) == 1000

    def test_never_negative(self, rng) -> None:
        for _ in range(100):
            assert add_jitter(1, 5.0, rng) >= 0

    def test_rounds_half_up(self) -> None:
        midpoint = fixed_rng(0.5)
        assert add_jitter(2.5, 0.3, midpoint) == 3

    def test_extremes(self) -> None:
        assert add_jitter(1000, 0.3, fixed_rng(0.0)) == 700
        assert add_jitter(1000, 0.3, fixed_rng(0.999999)) == 1300


class TestRandomDelay:
    """Tests for random_delay."""

    def test_within_bounds(self, rng) -> None:
        values = [random_delay(100, 200, rng) for _ in range(500)]
        assert min(values) >= 100
        assert max(values) <= 200

    def test_equal_bounds(self, rng) -> None:
        assert random_delay(50, 50, rng) == 50


class TestExponentialBackoff:
    """Tests for exponential_backoff."""

    def test_never_exceeds_max(self, rng) -> None:
        for attempt in range(20):
            assert exponential_backoff(attempt, 1.0, 60.0, rng=rng) <= 60.0

    def test_grows_with_attempts(self) -> None:
        delays = [exponential_backoff(n, 1.0, 1000.0, jitter_factor=0) for n in range(5)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_jitter_applied(self, rng) -> None:
        for _ in range(100):
            assert 1.4 <= exponential_backoff(1, 1.0, 60.0, rng=rng) <= 2.6

    def test_negative_attempt_treated_as_zero(self) -> None:
        assert exponential_backoff(-3, 2.0, 60.0, jitter_factor=0) == pytest.approx(2.0)
