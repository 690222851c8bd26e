# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Scheduler Configuration for the Account Scheduler

This module provides configuration classes for the account scheduler,
including health scoring, token bucket, quota guard and backoff settings.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from .exceptions import ConfigurationError


class AccountSelectionStrategy(Enum):
    """Strategy used to pick an account for each request.

    - STICKY: Keep using the same account until it is rate-limited or cooling
      down. Preserves prompt caches on the upstream.
    - ROUND_ROBIN: Rotate to the next available account on every request.
    - HYBRID: Score accounts by health, token balance and idle time, with
      hysteresis so near-equal accounts do not alternate.
    - PRIORITY_QUEUE: Weighted random pick favouring healthy accounts with
      spare tokens.
    """

    STICKY = "sticky"
    ROUND_ROBIN = "round-robin"
    HYBRID = "hybrid"
    PRIORITY_QUEUE = "priority-queue"


class SchedulingMode(Enum):
    """How the scheduler behaves when the preferred account is unavailable.

    - CACHE_FIRST: Wait (up to max_cache_first_wait_seconds) for the current
      account to come back before switching, to keep prompt-cache locality.
    - BALANCE: Switch immediately to any non-excluded account.
    - PERFORMANCE_FIRST: Ignore stickiness entirely and always round-robin.
    """

    CACHE_FIRST = "cache_first"
    BALANCE = "balance"
    PERFORMANCE_FIRST = "performance_first"


@dataclass
class HealthScoreConfig:
    """Parameters of the per-account health score."""

    initial: float = 70
    """Score assigned to an account the first time it is seen."""

    success_reward: float = 1
    """Points added on a successful request."""

    rate_limit_penalty: float = -10
    """Points added (negative) on a rate limit."""

    failure_penalty: float = -20
    """Points added (negative) on an auth or network failure."""

    recovery_rate_per_hour: float = 2
    """Whole points recovered per hour without any recorded event."""

    min_usable: float = 50
    """Minimum score for an account to be selectable."""

    max_score: float = 100
    """Score ceiling."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_score <= 0:
            raise ValueError("max_score must be positive")
        if not 0 <= self.initial <= self.max_score:
            raise ValueError("initial must be between 0 and max_score")
        if self.success_reward < 0:
            raise ValueError("success_reward must be non-negative")
        if self.rate_limit_penalty > 0:
            raise ValueError("rate_limit_penalty must be zero or negative")
        if self.failure_penalty > 0:
            raise ValueError("failure_penalty must be zero or negative")
        if self.recovery_rate_per_hour < 0:
            raise ValueError("recovery_rate_per_hour must be non-negative")
        if not 0 <= self.min_usable <= self.max_score:
            raise ValueError("min_usable must be between 0 and max_score")


@dataclass
class TokenBucketConfig:
    """Parameters of the per-account client-side token bucket."""

    max_tokens: float = 50
    """Bucket capacity."""

    regeneration_rate_per_minute: float = 6
    """Tokens regenerated per minute."""

    initial_tokens: float = 50
    """Balance of an account the first time it is seen."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.regeneration_rate_per_minute < 0:
            raise ValueError("regeneration_rate_per_minute must be non-negative")
        if not 0 <= self.initial_tokens <= self.max_tokens:
            raise ValueError("initial_tokens must be between 0 and max_tokens")


@dataclass
class QuotaGuardConfig:
    """Proactive quota checking performed before dispatch."""

    enabled: bool = True
    """Run the preflight quota check (requires a quota fetcher)."""

    switch_remaining_percent: float = 5
    """Switch away when the lowest quota group is at or below this percent."""

    cooldown_minutes: float = 300
    """How long an account stays excluded after a quota-driven switch."""

    wait_when_no_account: bool = True
    """Poll for an account instead of failing immediately when none is usable."""

    wait_poll_seconds: float = 30
    """Base interval between polls while waiting (jittered)."""

    max_wait_seconds: float = 0
    """Upper bound on waiting for an account. 0 = unbounded."""

    quota_cache_ttl_seconds: float = 60
    """TTL of cached quota summaries."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not 0 <= self.switch_remaining_percent <= 100:
            raise ValueError("switch_remaining_percent must be between 0 and 100")
        if self.cooldown_minutes < 0:
            raise ValueError("cooldown_minutes must be non-negative")
        if self.wait_poll_seconds <= 0:
            raise ValueError("wait_poll_seconds must be positive")
        if self.max_wait_seconds < 0:
            raise ValueError("max_wait_seconds must be non-negative")
        if self.quota_cache_ttl_seconds < 0:
            raise ValueError("quota_cache_ttl_seconds must be non-negative")


@dataclass
class SchedulerConfig:
    """
    Configuration for the account scheduler.

    Option names match the snake_case keys of the plugin configuration file,
    so a parsed file section can be handed to ``from_dict`` unchanged.
    """

    # === Selection ===

    account_selection_strategy: AccountSelectionStrategy = (
        AccountSelectionStrategy.HYBRID
    )
    """Strategy used to pick an account for each request."""

    scheduling_mode: SchedulingMode = SchedulingMode.CACHE_FIRST
    """Behaviour when the preferred account is excluded."""

    pid_offset_enabled: bool = False
    """Start the rotation cursor at pid % account_count to spread processes."""

    # === Rate Limit Handling ===

    switch_on_first_rate_limit: bool = True
    """Exclude an account on its first rate limit instead of retrying it once."""

    default_retry_after_seconds: float = 60.0
    """Reset delay used when the upstream does not provide one."""

    max_rate_limit_wait_seconds: float = 300.0
    """Maximum time to wait for any account. 0 = unbounded."""

    max_cache_first_wait_seconds: float = 60.0
    """Maximum time CACHE_FIRST waits for the current account before switching."""

    max_backoff_seconds: float = 60.0
    """Cap on any single wait the scheduler asks for."""

    # === Failure Handling ===

    failure_ttl_seconds: float = 3600.0
    """How long an account with too many consecutive failures stays excluded."""

    max_consecutive_failures: int = 3
    """Consecutive failures tolerated before the failure TTL applies."""

    # === Trackers ===

    health_score: HealthScoreConfig = field(default_factory=HealthScoreConfig)
    token_bucket: TokenBucketConfig = field(default_factory=TokenBucketConfig)
    quota_guard: QuotaGuardConfig = field(default_factory=QuotaGuardConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if isinstance(self.account_selection_strategy, str):
            self.account_selection_strategy = AccountSelectionStrategy(
                self.account_selection_strategy
            )
        if isinstance(self.scheduling_mode, str):
            self.scheduling_mode = SchedulingMode(self.scheduling_mode)
        if self.default_retry_after_seconds < 0:
            raise ValueError("default_retry_after_seconds must be non-negative")
        if self.max_rate_limit_wait_seconds < 0:
            raise ValueError("max_rate_limit_wait_seconds must be non-negative")
        if self.max_cache_first_wait_seconds < 0:
            raise ValueError("max_cache_first_wait_seconds must be non-negative")
        if self.max_backoff_seconds <= 0:
            raise ValueError("max_backoff_seconds must be positive")
        if self.failure_ttl_seconds < 0:
            raise ValueError("failure_ttl_seconds must be non-negative")
        if self.max_consecutive_failures < 0:
            raise ValueError("max_consecutive_failures must be non-negative")

    @property
    def effective_max_wait_seconds(self) -> float:
        """Smallest non-zero wait bound across scheduler and quota guard (0 = none)."""
        bounds = [
            b
            for b in (self.max_rate_limit_wait_seconds, self.quota_guard.max_wait_seconds)
            if b > 0
        ]
        return min(bounds) if bounds else 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchedulerConfig":
        """
        Build a configuration from a parsed configuration mapping.

        Unknown top-level keys are ignored (the surrounding plugin config holds
        many unrelated options); unknown keys inside the nested sections are
        rejected. Quota-guard keys may be camelCase.

        Raises:
            ConfigurationError: If a value is invalid or a nested key is unknown.
        """
        try:
            kwargs: dict[str, Any] = {}
            scalar_names = {
                f.name
                for f in fields(cls)
                if f.name not in _NESTED_SECTIONS
            }
            for name in scalar_names:
                if name in data and data[name] is not None:
                    kwargs[name] = data[name]

            for section, section_cls in _NESTED_SECTIONS.items():
                raw = data.get(section)
                if raw is None:
                    continue
                kwargs[section] = _build_section(section, section_cls, raw)

            return cls(**kwargs)
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid scheduler configuration: {e}") from e


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

_NESTED_SECTIONS: dict[str, type] = {
    "health_score": HealthScoreConfig,
    "token_bucket": TokenBucketConfig,
    "quota_guard": QuotaGuardConfig,
}


def _build_section(section: str, section_cls: type, raw: Any) -> Any:
    if isinstance(raw, section_cls):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"'{section}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        name = _CAMEL_BOUNDARY.sub("_", key).lower()
        if name not in known:
            raise ConfigurationError(f"Unknown option '{key}' in '{section}'")
        values[name] = value
    return section_cls(**values)


__all__ = [
    "AccountSelectionStrategy",
    "HealthScoreConfig",
    "QuotaGuardConfig",
    "SchedulerConfig",
    "SchedulingMode",
    "TokenBucketConfig",
]
