# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Quota guard: proactive account switching before quota exhaustion.

Before a request is dispatched, the scheduler checks the selected account's
remaining quota (through a TTL cache) and demotes the account when the
remaining percentage drops to the configured threshold. This avoids the long
upstream lockout that follows hitting 0%.

A failed quota lookup never fails the request: the check degrades to "no
data" and the scheduler relies on reactive rate-limit handling instead.
"""

import logging
import math
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..config import QuotaGuardConfig
from ..exceptions import QuotaFetchFailedError
from ..protocols import Clock
from ..types.account import AccountRecord
from ..types.quota import PreflightResult, QuotaSummary

logger = logging.getLogger(__name__)


def calculate_min_remaining_percent(quota: QuotaSummary) -> int | None:
    """
    Minimum remaining percent across all quota groups.

    The minimum is used rather than the average because any exhausted group
    fails requests regardless of the others.

    Returns:
        0-100, rounded half up, or None when no group reports a fraction.

    Example:
        >>> quota = QuotaSummary(groups={"claude": {"remaining_fraction": 0.04}})
        >>> calculate_min_remaining_percent(quota)
        4
    """
    fractions = [
        group.remaining_fraction
        for group in quota.groups.values()
        if group.remaining_fraction is not None
    ]
    if not fractions:
        return None
    return math.floor(min(fractions) * 100 + 0.5)


@dataclass
class CacheEntry:
    """Cached quota for one account."""

    quota: QuotaSummary
    fetched_at: float


class QuotaGuardCache:
    """
    TTL cache of quota summaries keyed by account index.

    Expired entries are evicted on read. Concurrent misses for the same
    account may each fetch; the last write wins.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.time) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, CacheEntry] = {}

    def get(self, account_index: int) -> QuotaSummary | None:
        """Cached quota for an account, or None if missing or expired."""
        entry = self._entries.get(account_index)
        if entry is None:
            return None

        if self._clock() - entry.fetched_at > self.ttl_seconds:
            del self._entries[account_index]
            return None

        return entry.quota

    def set(self, account_index: int, quota: QuotaSummary) -> None:
        self._entries[account_index] = CacheEntry(
            quota=quota, fetched_at=self._clock()
        )

    def invalidate(self, account_index: int) -> None:
        self._entries.pop(account_index, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _coerce_quota(
    raw: QuotaSummary | Mapping[str, Any] | None,
) -> QuotaSummary | None:
    if raw is None or isinstance(raw, QuotaSummary):
        return raw
    return QuotaSummary.model_validate(raw)


async def preflight_quota_check(
    account: AccountRecord,
    cache: QuotaGuardCache,
    config: QuotaGuardConfig,
    fetch_quota: Callable[[], Awaitable[QuotaSummary | Mapping[str, Any] | None]],
    on_cache_hit: Callable[[bool], None] | None = None,
) -> PreflightResult:
    """
    Check an account's quota and decide whether to switch away from it.

    Cached quota is used when fresh; otherwise ``fetch_quota`` is awaited and
    a non-None result is cached. Fetch errors (including invalid payloads) are
    logged and reported on the result, never raised.

    Args:
        account: Account about to be used
        cache: Quota cache shared across checks
        config: Quota guard configuration
        fetch_quota: Zero-argument coroutine function fetching fresh quota
        on_cache_hit: Optional callback told whether the cache was hit

    Returns:
        PreflightResult with should_switch set when the remaining percent is
        at or below ``config.switch_remaining_percent``.
    """
    quota = cache.get(account.index)
    if on_cache_hit is not None:
        on_cache_hit(quota is not None)

    if quota is None:
        try:
            quota = _coerce_quota(await fetch_quota())
        except Exception as e:
            error = QuotaFetchFailedError(account.index, e)
            logger.warning(
                f"Failed to fetch quota for preflight check "
                f"({mask_email(account.email)}, account {account.index}): {e}"
            )
            return PreflightResult(should_switch=False, error=error)

        if quota is not None:
            cache.set(account.index, quota)

    if quota is None:
        return PreflightResult(should_switch=False)

    remaining_percent = calculate_min_remaining_percent(quota)
    if remaining_percent is None:
        return PreflightResult(should_switch=False)

    threshold = config.switch_remaining_percent
    if remaining_percent <= threshold:
        return PreflightResult(
            should_switch=True,
            remaining_percent=remaining_percent,
            reason=f"Quota at {remaining_percent}% (threshold: {threshold}%)",
        )

    return PreflightResult(should_switch=False, remaining_percent=remaining_percent)


def mask_email(email: str | None) -> str:
    """
    Mask an email address for logs.

    Example:
        >>> mask_email("user@example.com")
        'u***r@example.com'
        >>> mask_email("ab@example.com")
        '***@example.com'
        >>> mask_email(None)
        'Account'
    """
    if not email:
        return "Account"

    local, at, domain = email.partition("@")
    if not at:
        return "***"
    if len(local) <= 2:
        return f"***@{domain}"
    return f"{local[0]}***{local[-1]}@{domain}"


def format_wait_time(seconds: float) -> str:
    """
    Format a wait for display, e.g. ``45s``, ``2m 5s``, ``1h 30m``.

    Fractional seconds are dropped.
    """
    total = max(0, int(seconds))
    if total < 60:
        return f"{total}s"

    minutes, remaining_seconds = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s" if remaining_seconds else f"{minutes}m"

    hours, remaining_minutes = divmod(minutes, 60)
    return f"{hours}h {remaining_minutes}m" if remaining_minutes else f"{hours}h"


__all__ = [
    "CacheEntry",
    "QuotaGuardCache",
    "calculate_min_remaining_percent",
    "format_wait_time",
    "mask_email",
    "preflight_quota_check",
]
