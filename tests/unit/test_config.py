"""
Unit tests for scheduler configuration.

Covers defaults, __post_init__ validation, string-to-enum coercion and
SchedulerConfig.from_dict parsing of configuration mappings.
"""

import pytest

from account_scheduler.config import (
    AccountSelectionStrategy,
    HealthScoreConfig,
    QuotaGuardConfig,
    SchedulerConfig,
    SchedulingMode,
    TokenBucketConfig,
)
from account_scheduler.exceptions import ConfigurationError


class TestDefaults:
    """Default values of every configuration section."""

    def test_scheduler_defaults(self) -> None:
        config = SchedulerConfig()
        assert config.account_selection_strategy is AccountSelectionStrategy.HYBRID
        assert config.scheduling_mode is SchedulingMode.CACHE_FIRST
        assert config.pid_offset_enabled is False
        assert config.switch_on_first_rate_limit is True
        assert config.default_retry_after_seconds == 60.0
        assert config.max_rate_limit_wait_seconds == 300.0
        assert config.max_cache_first_wait_seconds == 60.0
        assert config.failure_ttl_seconds == 3600.0

    def test_health_defaults(self) -> None:
        config = HealthScoreConfig()
        assert (config.initial, config.success_reward) == (70, 1)
        assert (config.rate_limit_penalty, config.failure_penalty) == (-10, -20)
        assert (config.recovery_rate_per_hour, config.min_usable) == (2, 50)
        assert config.max_score == 100

    def test_token_bucket_defaults(self) -> None:
        config = TokenBucketConfig()
        assert config.max_tokens == 50
        assert config.regeneration_rate_per_minute == 6
        assert config.initial_tokens == 50

    def test_quota_guard_defaults(self) -> None:
        config = QuotaGuardConfig()
        assert config.enabled is True
        assert config.switch_remaining_percent == 5
        assert config.cooldown_minutes == 300
        assert config.wait_when_no_account is True
        assert config.wait_poll_seconds == 30
        assert config.max_wait_seconds == 0
        assert config.quota_cache_ttl_seconds == 60

    def test_nested_sections_not_shared(self) -> None:
        first, second = SchedulerConfig(), SchedulerConfig()
        assert first.health_score is not second.health_score


class TestValidation:
    """__post_init__ validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_score": 0},
            {"initial": 120},
            {"rate_limit_penalty": 5},
            {"failure_penalty": 1},
            {"success_reward": -1},
            {"recovery_rate_per_hour": -1},
            {"min_usable": -1},
        ],
    )
    def test_invalid_health_config(self, kwargs) -> None:
        with pytest.raises(ValueError):
            HealthScoreConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_tokens": 0},
            {"regeneration_rate_per_minute": -1},
            {"initial_tokens": 51},
            {"initial_tokens": -1},
        ],
    )
    def test_invalid_token_bucket_config(self, kwargs) -> None:
        with pytest.raises(ValueError):
            TokenBucketConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"switch_remaining_percent": 101},
            {"cooldown_minutes": -1},
            {"wait_poll_seconds": 0},
            {"max_wait_seconds": -1},
            {"quota_cache_ttl_seconds": -1},
        ],
    )
    def test_invalid_quota_guard_config(self, kwargs) -> None:
        with pytest.raises(ValueError):
            QuotaGuardConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_retry_after_seconds": -1},
            {"max_rate_limit_wait_seconds": -1},
            {"max_cache_first_wait_seconds": -1},
            {"max_backoff_seconds": 0},
            {"failure_ttl_seconds": -1},
            {"max_consecutive_failures": -1},
        ],
    )
    def test_invalid_scheduler_config(self, kwargs) -> None:
        with pytest.raises(ValueError):
            SchedulerConfig(**kwargs)

    def test_string_enums_coerced(self) -> None:
        config = SchedulerConfig(
            account_selection_strategy="round-robin",  # type: ignore[arg-type]
            scheduling_mode="balance",  # type: ignore[arg-type]
        )
        assert config.account_selection_strategy is AccountSelectionStrategy.ROUND_ROBIN
        assert config.scheduling_mode is SchedulingMode.BALANCE

    def test_unknown_enum_string(self) -> None:
        with pytest.raises(ValueError):
            SchedulerConfig(scheduling_mode="fastest")  # type: ignore[arg-type]


class TestEffectiveMaxWait:
    """Tests for effective_max_wait_seconds."""

    def test_smallest_non_zero_bound(self) -> None:
        config = SchedulerConfig(
            max_rate_limit_wait_seconds=300,
            quota_guard=QuotaGuardConfig(max_wait_seconds=120),
        )
        assert config.effective_max_wait_seconds == 120

    def test_zero_means_unbounded(self) -> None:
        config = SchedulerConfig(max_rate_limit_wait_seconds=0)
        assert config.effective_max_wait_seconds == 0.0

    def test_only_scheduler_bound(self) -> None:
        assert SchedulerConfig().effective_max_wait_seconds == 300.0


class TestFromDict:
    """Tests for SchedulerConfig.from_dict."""

    def test_empty_mapping_gives_defaults(self) -> None:
        assert SchedulerConfig.from_dict({}) == SchedulerConfig()

    def test_top_level_values(self) -> None:
        config = SchedulerConfig.from_dict(
            {
                "account_selection_strategy": "sticky",
                "scheduling_mode": "performance_first",
                "pid_offset_enabled": True,
                "max_rate_limit_wait_seconds": 30,
            }
        )
        assert config.account_selection_strategy is AccountSelectionStrategy.STICKY
        assert config.scheduling_mode is SchedulingMode.PERFORMANCE_FIRST
        assert config.pid_offset_enabled is True
        assert config.max_rate_limit_wait_seconds == 30

    def test_unknown_top_level_keys_ignored(self) -> None:
        config = SchedulerConfig.from_dict({"debug": True, "keep_thinking": False})
        assert config == SchedulerConfig()

    def test_none_values_use_defaults(self) -> None:
        config = SchedulerConfig.from_dict(
            {"scheduling_mode": None, "quota_guard": None}
        )
        assert config == SchedulerConfig()

    def test_nested_sections(self) -> None:
        config = SchedulerConfig.from_dict(
            {
                "health_score": {"initial": 80, "min_usable": 40},
                "token_bucket": {"max_tokens": 10, "initial_tokens": 10},
            }
        )
        assert config.health_score.initial == 80
        assert config.health_score.min_usable == 40
        assert config.token_bucket.max_tokens == 10

    def test_camel_case_nested_keys(self) -> None:
        config = SchedulerConfig.from_dict(
            {
                "quota_guard": {
                    "switchRemainingPercent": 10,
                    "cooldownMinutes": 30,
                    "waitWhenNoAccount": False,
                    "quotaCacheTtlSeconds": 15,
                }
            }
        )
        assert config.quota_guard.switch_remaining_percent == 10
        assert config.quota_guard.cooldown_minutes == 30
        assert config.quota_guard.wait_when_no_account is False
        assert config.quota_guard.quota_cache_ttl_seconds == 15

    def test_section_instance_accepted(self) -> None:
        section = QuotaGuardConfig(enabled=False)
        config = SchedulerConfig.from_dict({"quota_guard": section})
        assert config.quota_guard is section

    def test_unknown_nested_key_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown option 'bogus'"):
            SchedulerConfig.from_dict({"quota_guard": {"bogus": 1}})

    def test_non_mapping_section_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="'token_bucket' must be a mapping"):
            SchedulerConfig.from_dict({"token_bucket": 5})

    def test_invalid_value_wrapped(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid scheduler configuration"):
            SchedulerConfig.from_dict({"health_score": {"initial": -5}})

    def test_unknown_strategy_wrapped(self) -> None:
        with pytest.raises(ConfigurationError):
            SchedulerConfig.from_dict({"account_selection_strategy": "fastest"})
