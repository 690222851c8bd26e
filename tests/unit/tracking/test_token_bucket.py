"""Unit tests for TokenBucketTracker."""

import math

import pytest

from account_scheduler.config import TokenBucketConfig
from account_scheduler.tracking.token_bucket import TokenBucketTracker

MINUTE = 60.0


@pytest.fixture
def tracker(clock):
    return TokenBucketTracker(TokenBucketConfig(), clock=clock)


class TestBalance:
    def test_unknown_account_has_initial_tokens(self, tracker):
        assert tracker.get_tokens(3) == 50
        assert tracker.get_max_tokens() == 50

    def test_has_tokens(self, tracker):
        assert tracker.has_tokens(0) is True
        assert tracker.has_tokens(0, cost=50) is True
        assert tracker.has_tokens(0, cost=51) is False


class TestConsume:
    def test_consume_deducts(self, tracker):
        assert tracker.consume(0) is True
        assert tracker.get_tokens(0) == 49

    def test_insufficient_balance_rejected_without_change(self, clock):
        """5 tokens available, consume(10) fails and leaves 5."""
        tracker = TokenBucketTracker(TokenBucketConfig(initial_tokens=5), clock=clock)

        assert tracker.consume(0, 10) is False
        assert tracker.get_tokens(0) == 5

    def test_consume_can_drain_to_zero(self, tracker):
        assert tracker.consume(0, 50) is True
        assert tracker.get_tokens(0) == 0
        assert tracker.consume(0) is False

    def test_accounts_are_independent(self, tracker):
        tracker.consume(0, 50)
        assert tracker.get_tokens(1) == 50


class TestRegeneration:
    def test_regenerates_to_full(self, tracker, clock):
        """50 -> 20 after consuming 30, back to 50 after five minutes at 6/min."""
        tracker.consume(0, 30)
        assert tracker.get_tokens(0) == 20

        clock.advance(5 * MINUTE)
        assert tracker.get_tokens(0) == 50

    def test_regeneration_is_continuous(self, tracker, clock):
        tracker.consume(0, 30)
        clock.advance(30)  # half a minute at 6/min
        assert tracker.get_tokens(0) == pytest.approx(23)

    def test_regeneration_capped_at_max(self, tracker, clock):
        tracker.consume(0, 1)
        clock.advance(24 * 60 * MINUTE)
        assert tracker.get_tokens(0) == 50

    def test_seconds_until_tokens(self, tracker, clock):
        tracker.consume(0, 50)
        assert tracker.seconds_until_tokens(0) == pytest.approx(10.0)
        assert tracker.seconds_until_tokens(1) == 0.0

    def test_seconds_until_tokens_without_regeneration(self, clock):
        tracker = TokenBucketTracker(
            TokenBucketConfig(regeneration_rate_per_minute=0), clock=clock
        )
        tracker.consume(0, 50)
        assert math.isinf(tracker.seconds_until_tokens(0))


class TestRefundAndReset:
    def test_refund_returns_tokens(self, tracker):
        tracker.consume(0, 3)
        tracker.refund(0, 2)
        assert tracker.get_tokens(0) == 49

    def test_refund_capped_at_max(self, tracker):
        tracker.refund(0, 10)
        assert tracker.get_tokens(0) == 50

    def test_reset_restores_initial(self, tracker):
        tracker.consume(0, 40)
        tracker.reset(0)
        assert tracker.get_tokens(0) == 50
