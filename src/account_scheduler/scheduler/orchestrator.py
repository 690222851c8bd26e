# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Account scheduler orchestrator.

AccountScheduler ties the trackers, the selection strategy and the quota
guard together. Callers ask it for an account before each request and report
the outcome afterwards:

    selection = await scheduler.select_account("claude")
    if selection.wait_seconds:
        await asyncio.sleep(selection.wait_seconds)
    response = await send(accounts[selection.index], request)
    scheduler.report_outcome(selection.index, outcome_of(response), "claude")

Everything except the quota fetch and the wait-loop sleep runs synchronously
on the event loop, so concurrent selections interleave only at those two
points. A selection is advisory; the one token consumed for it is the only
capacity that is reserved.
"""

import asyncio
import dataclasses
import functools
import logging
import math
import os
import random
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from ..backoff import exponential_backoff
from ..config import AccountSelectionStrategy, SchedulerConfig, SchedulingMode
from ..exceptions import NoAccountAvailableError, WaitTimeoutExceededError
from ..observability.collector import MetricsCollector
from ..observability.constants import (
    ACCOUNT_HEALTH_SCORE,
    ACCOUNT_TOKENS,
    NO_ACCOUNT_TOTAL,
    OUTCOMES_TOTAL,
    PREFLIGHT_SWITCHES_TOTAL,
    QUOTA_CACHE_HITS_TOTAL,
    QUOTA_CACHE_MISSES_TOTAL,
    QUOTA_FETCH_FAILURES_TOTAL,
    SELECTIONS_TOTAL,
    WAIT_SECONDS,
    WAIT_TIMEOUTS_TOTAL,
)
from ..protocols import Clock, QuotaFetcher
from ..protocols.storage import AccountStoreProtocol
from ..quota.guard import (
    QuotaGuardCache,
    format_wait_time,
    mask_email,
    preflight_quota_check,
)
from ..strategies.selection import (
    BaseSelectionStrategy,
    RoundRobinCursor,
    RoundRobinStrategy,
    SelectionContext,
    create_strategy,
)
from ..tracking.health import HealthScoreTracker
from ..tracking.token_bucket import TokenBucketTracker
from ..types.account import AccountRecord, AccountWithMetrics
from ..types.outcome import AccountSelection, DispatchOutcome, OutcomeKind

logger = logging.getLogger(__name__)

FIRST_RATE_LIMIT_SWITCH_DELAY = 1.0
"""Grace delay (seconds) handed to the next selection after a rate-limit switch."""

DEFAULT_QUOTA_GROUP = "default"


@dataclass
class AccountRuntimeState:
    """
    Scheduler-owned state of one account that is never persisted.

    Attributes:
        cooldown_until: Quota-guard cooldown end (epoch seconds)
        last_failure_at: Time of the last auth/network failure
        retry_until: Per quota group, end of the soft retry window armed by a
            rate limit that did not switch accounts
        rate_limit_streak: Per quota group, consecutive rate limits
    """

    cooldown_until: float = 0.0
    last_failure_at: float = 0.0
    retry_until: dict[str, float] = field(default_factory=dict)
    rate_limit_streak: dict[str, int] = field(default_factory=dict)


class AccountScheduler:
    """
    Chooses an account per request and tracks the outcome of each dispatch.

    The scheduler owns its health and token trackers, the quota cache, the
    round-robin cursor and all runtime state; two schedulers never share
    state. Durable facts (last use, rate-limit reset times) are written back
    through the storage collaborator.

    Scheduling modes govern what happens when the strategy finds nothing:

    - CACHE_FIRST: hand out the account whose rate limit resets soonest,
      provided that is within ``max_cache_first_wait_seconds``, together with
      a ``wait_seconds`` for the caller to observe.
    - BALANCE: only ever hand out accounts that are usable right now.
    - PERFORMANCE_FIRST: like BALANCE, and always round-robin, ignoring
      stickiness and the configured strategy.

    When no account is usable, the scheduler either raises
    NoAccountAvailableError (``quota_guard.wait_when_no_account = False``) or
    polls until one becomes available, bounded by the smaller non-zero of
    ``max_rate_limit_wait_seconds`` and ``quota_guard.max_wait_seconds``.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        storage: AccountStoreProtocol,
        fetch_quota: QuotaFetcher | None = None,
        *,
        clock: Clock = time.time,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        metrics_collector: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            config: Scheduler configuration
            storage: Collaborator owning the account records
            fetch_quota: Async quota lookup used by the preflight check.
                The quota guard is inactive without one.
            clock: Source of epoch seconds
            rng: Random source for jitter and priority-queue selection
            sleep: Coroutine function used by the wait loop
            metrics_collector: Collector for scheduler metrics. Defaults to a
                dict-only collector; pass a Prometheus-enabled one to export.
        """
        self.config = config
        self.storage = storage
        self._fetch_quota = fetch_quota
        self._clock = clock
        self._rng = rng or random.Random()  # noqa: S311  # nosec B311
        self._sleep = sleep
        self.metrics = metrics_collector or MetricsCollector(enable_prometheus=False)

        self.health = HealthScoreTracker(config.health_score, clock=clock)
        self.tokens = TokenBucketTracker(config.token_bucket, clock=clock)
        self.quota_cache = QuotaGuardCache(
            config.quota_guard.quota_cache_ttl_seconds, clock=clock
        )

        self._cursor = RoundRobinCursor()
        self._cursor_seeded = not config.pid_offset_enabled
        self.strategy: BaseSelectionStrategy = create_strategy(
            config.account_selection_strategy, cursor=self._cursor, rng=self._rng
        )
        self._round_robin = RoundRobinStrategy(self._cursor)

        self._runtime: dict[int, AccountRuntimeState] = {}
        self._current: dict[str, int] = {}
        self._pending_grace: dict[str, float] = {}

        logger.debug(
            f"AccountScheduler initialized (strategy="
            f"{config.account_selection_strategy.value}, "
            f"mode={config.scheduling_mode.value})"
        )

    # === Selection ===

    async def select_account(
        self, quota_group: str = DEFAULT_QUOTA_GROUP
    ) -> AccountSelection:
        """
        Select an account for one request.

        Args:
            quota_group: Quota group the request will consume

        Returns:
            The selected account. The caller must wait ``wait_seconds``
            before dispatching.

        Raises:
            NoAccountAvailableError: No account is usable and waiting is
                disabled, or the pool has no enabled accounts.
            WaitTimeoutExceededError: No account became usable within the
                configured wait bound.
        """
        started = self._clock()
        max_wait = self.config.effective_max_wait_seconds
        labels = {"quota_group": quota_group}
        attempt = 0

        while True:
            accounts = [a for a in self.storage.get_accounts() if a.enabled]
            if not accounts:
                self.metrics.inc_counter(NO_ACCOUNT_TOTAL, labels=labels)
                raise NoAccountAvailableError(
                    "No enabled accounts", quota_group=quota_group
                )

            selection = await self._select_from(accounts, quota_group)
            now = self._clock()
            elapsed = max(0.0, now - started)
            if selection is not None:
                if elapsed > 0:
                    self.metrics.observe_histogram(WAIT_SECONDS, elapsed, labels=labels)
                return selection

            self.metrics.inc_counter(NO_ACCOUNT_TOTAL, labels=labels)
            retry_after = self._seconds_until_available(accounts, quota_group, now)

            if not self.config.quota_guard.wait_when_no_account:
                logger.warning(
                    f"No account available for quota group '{quota_group}'"
                )
                raise NoAccountAvailableError(
                    quota_group=quota_group, retry_after=retry_after
                )

            if max_wait > 0:
                remaining = max_wait - elapsed
                if remaining <= 0 or (
                    retry_after is not None and retry_after > remaining
                ):
                    self.metrics.inc_counter(WAIT_TIMEOUTS_TOTAL, labels=labels)
                    logger.warning(
                        f"Giving up on quota group '{quota_group}' after "
                        f"{format_wait_time(elapsed)} (max wait: "
                        f"{format_wait_time(max_wait)})"
                    )
                    raise WaitTimeoutExceededError(
                        elapsed, max_wait, quota_group=quota_group
                    )

            delay = self._poll_delay(retry_after, attempt)
            attempt += 1
            if max_wait > 0:
                delay = min(delay, max_wait - elapsed)
            logger.info(
                f"All accounts excluded for quota group '{quota_group}', "
                f"waiting {format_wait_time(delay)}"
            )
            await self._sleep(delay)

    async def _select_from(
        self, accounts: Sequence[AccountRecord], quota_group: str
    ) -> AccountSelection | None:
        """One selection round. Returns None when every account is excluded."""
        if not self._cursor_seeded:
            self._cursor.seed(os.getpid(), len(accounts))
            self._cursor_seeded = True

        by_index = {a.index: a for a in accounts}
        excluded: set[int] = set()
        current = self._current.get(quota_group)
        performance_first = (
            self.config.scheduling_mode is SchedulingMode.PERFORMANCE_FIRST
        )
        strategy = self._round_robin if performance_first else self.strategy

        while True:
            now = self._clock()
            snapshot = [
                self._build_metrics(a, quota_group, now)
                for a in accounts
                if a.index not in excluded
            ]

            wait_seconds = 0.0
            reason: str | None = None
            index = self._retry_candidate(by_index, excluded, current, quota_group, now)
            if index is not None:
                wait_seconds = self._runtime[index].retry_until[quota_group] - now
                reason = f"Retrying in {format_wait_time(wait_seconds)} after rate limit"
            else:
                index = strategy.select(
                    snapshot,
                    SelectionContext(
                        token_tracker=self.tokens,
                        current_index=None if performance_first else current,
                        min_health_score=self.config.health_score.min_usable,
                        now=now,
                    ),
                )
            if index is None:
                index = self._cache_first_candidate(
                    snapshot, by_index, current, quota_group, now
                )
                if index is None:
                    return None
                wait_seconds = self._exclusion_end(by_index[index], quota_group) - now
                reason = f"Waiting {format_wait_time(wait_seconds)} for rate limit reset"

            if not self.tokens.consume(index):
                logger.debug(f"Account {index} has no tokens, excluding")
                excluded.add(index)
                continue

            account = by_index[index]
            if not await self._passes_preflight(account, quota_group):
                excluded.add(index)
                continue

            switched = current is not None and index != current
            if switched and reason is None:
                reason = f"Switched from account {current}"
            grace = self._pending_grace.pop(quota_group, 0.0)
            wait_seconds = max(wait_seconds, grace)

            self._current[quota_group] = index
            self.metrics.inc_counter(
                SELECTIONS_TOTAL,
                labels={
                    "quota_group": quota_group,
                    "strategy": strategy.name.value,
                    "switched": str(switched).lower(),
                },
            )
            self.metrics.set_gauge(
                ACCOUNT_TOKENS,
                self.tokens.get_tokens(index),
                labels={"account": str(index)},
            )
            if switched:
                logger.info(
                    f"Switched quota group '{quota_group}' from account {current} "
                    f"to {mask_email(account.email)} (account {index})"
                )
            else:
                logger.debug(f"Selected account {index} for '{quota_group}'")

            return AccountSelection(
                index=index,
                quota_group=quota_group,
                wait_seconds=wait_seconds,
                switched=switched,
                reason=reason,
            )

    def _retry_candidate(
        self,
        by_index: dict[int, AccountRecord],
        excluded: set[int],
        current: int | None,
        quota_group: str,
        now: float,
    ) -> int | None:
        """
        Current account, if it is inside the retry window of its first rate limit.

        The window excludes the account from strategy selection, but the quota
        group's own next selection gets it back once, with the rest of the
        window as ``wait_seconds``.
        """
        if current is None or current in excluded or current not in by_index:
            return None
        state = self._runtime.get(current)
        if state is None or state.rate_limit_streak.get(quota_group) != 1:
            return None
        if now >= state.retry_until.get(quota_group, 0.0):
            return None
        if by_index[current].is_rate_limited(quota_group, now):
            return None
        if self.is_cooling_down(current, now) or not self.health.is_usable(current):
            return None
        return current

    def _cache_first_candidate(
        self,
        snapshot: Sequence[AccountWithMetrics],
        by_index: dict[int, AccountRecord],
        current: int | None,
        quota_group: str,
        now: float,
    ) -> int | None:
        """
        Soonest-to-reset account CACHE_FIRST should wait for, if any.

        Only accounts excluded by nothing but a rate limit (or retry window)
        ending within ``max_cache_first_wait_seconds`` qualify. Ties go to the
        current account, then the lowest index.
        """
        if self.config.scheduling_mode is not SchedulingMode.CACHE_FIRST:
            return None

        best: tuple[float, bool, int] | None = None
        for acc in snapshot:
            if not acc.is_rate_limited or acc.is_cooling_down:
                continue
            if acc.health_score < self.config.health_score.min_usable:
                continue
            if not self.tokens.has_tokens(acc.index):
                continue
            wait = self._exclusion_end(by_index[acc.index], quota_group) - now
            if not 0 < wait <= self.config.max_cache_first_wait_seconds:
                continue
            key = (wait, acc.index != current, acc.index)
            if best is None or key < best:
                best = key
        return best[2] if best is not None else None

    async def _passes_preflight(self, account: AccountRecord, quota_group: str) -> bool:
        """Run the quota preflight. On a switch the account goes into cooldown."""
        guard = self.config.quota_guard
        if not guard.enabled or self._fetch_quota is None:
            return True

        result = await preflight_quota_check(
            account,
            self.quota_cache,
            guard,
            functools.partial(self._fetch_quota, account),
            on_cache_hit=self._record_cache_lookup,
        )
        if result.error is not None:
            self.metrics.inc_counter(QUOTA_FETCH_FAILURES_TOTAL)
        if not result.should_switch:
            return True

        self.tokens.refund(account.index)
        cooldown = guard.cooldown_minutes * 60
        self._runtime_state(account.index).cooldown_until = self._clock() + cooldown
        self.metrics.inc_counter(
            PREFLIGHT_SWITCHES_TOTAL, labels={"quota_group": quota_group}
        )
        logger.info(
            f"{mask_email(account.email)} (account {account.index}): "
            f"{result.reason}, cooling down for {format_wait_time(cooldown)}"
        )
        return False

    def _record_cache_lookup(self, hit: bool) -> None:
        self.metrics.inc_counter(QUOTA_CACHE_HITS_TOTAL if hit else QUOTA_CACHE_MISSES_TOTAL)

    def _build_metrics(
        self, account: AccountRecord, quota_group: str, now: float
    ) -> AccountWithMetrics:
        state = self._runtime.get(account.index)
        retry_until = state.retry_until.get(quota_group, 0.0) if state else 0.0
        return AccountWithMetrics(
            index=account.index,
            last_used=account.last_used,
            health_score=self.health.get_score(account.index),
            is_rate_limited=account.is_rate_limited(quota_group, now)
            or now < retry_until,
            is_cooling_down=self.is_cooling_down(account.index, now),
        )

    def is_cooling_down(self, index: int, now: float | None = None) -> bool:
        """
        Whether the account is excluded by the quota guard or the failure TTL.

        The failure TTL applies once consecutive failures exceed
        ``max_consecutive_failures`` and lasts ``failure_ttl_seconds`` from the
        last failure.
        """
        if now is None:
            now = self._clock()
        return now < self._cooling_down_until(index)

    def _cooling_down_until(self, index: int) -> float:
        state = self._runtime.get(index)
        if state is None:
            return 0.0
        until = state.cooldown_until
        if (
            state.last_failure_at
            and self.health.get_consecutive_failures(index)
            > self.config.max_consecutive_failures
        ):
            until = max(until, state.last_failure_at + self.config.failure_ttl_seconds)
        return until

    def _exclusion_end(self, account: AccountRecord, quota_group: str) -> float:
        """Time at which rate limits and retry windows on the account end."""
        state = self._runtime.get(account.index)
        retry_until = state.retry_until.get(quota_group, 0.0) if state else 0.0
        reset_at = account.rate_limit_reset_at(quota_group) or 0.0
        return max(reset_at, retry_until)

    def _seconds_until_available(
        self, accounts: Sequence[AccountRecord], quota_group: str, now: float
    ) -> float | None:
        """
        Seconds until the soonest account is expected to be usable again.

        Accounts excluded only by health have no predictable return and are
        ignored. Returns None when no account has a predictable return.
        """
        soonest: float | None = None
        for account in accounts:
            if not self.health.is_usable(account.index):
                continue
            ends = max(
                self._exclusion_end(account, quota_group),
                self._cooling_down_until(account.index),
            )
            wait = max(
                ends - now,
                self.tokens.seconds_until_tokens(account.index),
            )
            if math.isinf(wait):
                continue
            wait = max(0.0, wait)
            if soonest is None or wait < soonest:
                soonest = wait
        return soonest

    def _poll_delay(self, retry_after: float | None, attempt: int) -> float:
        """
        Jittered poll interval doubling from ``wait_poll_seconds`` per attempt.

        Never longer than ``max_backoff_seconds``, and never past the soonest
        expected availability.
        """
        delay = exponential_backoff(
            attempt,
            base_delay=self.config.quota_guard.wait_poll_seconds,
            max_delay=self.config.max_backoff_seconds,
            rng=self._rng,
        )
        if retry_after is not None and retry_after > 0:
            delay = min(delay, retry_after)
        return max(delay, 0.001)

    # === Outcome Reporting ===

    def report_outcome(
        self,
        index: int,
        outcome: DispatchOutcome,
        quota_group: str = DEFAULT_QUOTA_GROUP,
    ) -> None:
        """
        Feed the result of a dispatch back into the trackers.

        - success: reward health, clear the rate-limit streak, mark the
          account used in storage
        - rate limited: penalize health; on the first rate limit (when
          ``switch_on_first_rate_limit``) or the second in a row, persist the
          reset time and arm a short grace delay for the next selection;
          otherwise open a retry window capped at ``max_backoff_seconds``;
          selections for the group hand the account back with
          the rest of the window as ``wait_seconds``
        - failure: penalize health and stamp the failure time

        Outcomes for accounts no longer in storage are ignored, so a request
        still in flight when its account is removed leaves no state behind.
        """
        if all(a.index != index for a in self.storage.get_accounts()):
            logger.debug(f"Ignoring outcome for unknown account {index}")
            return

        now = self._clock()
        state = self._runtime_state(index)
        self.metrics.inc_counter(
            OUTCOMES_TOTAL,
            labels={"quota_group": quota_group, "outcome": outcome.kind.value},
        )

        if outcome.kind is OutcomeKind.SUCCESS:
            self.health.record_success(index)
            state.rate_limit_streak.pop(quota_group, None)
            state.retry_until.pop(quota_group, None)
            self.storage.mark_used(index, now)

        elif outcome.kind is OutcomeKind.RATE_LIMITED:
            self.health.record_rate_limit(index)
            delay = (
                outcome.retry_after
                if outcome.retry_after is not None
                else self.config.default_retry_after_seconds
            )
            streak = state.rate_limit_streak.get(quota_group, 0) + 1
            if self.config.switch_on_first_rate_limit or streak >= 2:
                state.rate_limit_streak.pop(quota_group, None)
                state.retry_until.pop(quota_group, None)
                self.storage.set_rate_limit_reset(index, quota_group, now + delay)
                self._pending_grace[quota_group] = FIRST_RATE_LIMIT_SWITCH_DELAY
                logger.info(
                    f"Account {index} rate limited on '{quota_group}', "
                    f"excluded for {format_wait_time(delay)}"
                )
            else:
                state.rate_limit_streak[quota_group] = streak
                retry = min(delay, self.config.max_backoff_seconds)
                state.retry_until[quota_group] = now + retry
                logger.info(
                    f"Account {index} rate limited on '{quota_group}', "
                    f"retrying in {format_wait_time(retry)}"
                )

        else:
            self.health.record_failure(index)
            state.last_failure_at = now
            logger.info(
                f"Account {index} failed "
                f"({self.health.get_consecutive_failures(index)} consecutive)"
            )

        self.metrics.set_gauge(
            ACCOUNT_HEALTH_SCORE,
            self.health.get_score(index),
            labels={"account": str(index)},
        )

    # === Lifecycle & Introspection ===

    def forget_account(self, index: int) -> None:
        """Drop every piece of scheduler state held for a removed account."""
        self.health.reset(index)
        self.tokens.reset(index)
        self.quota_cache.invalidate(index)
        self._runtime.pop(index, None)
        for group in [g for g, i in self._current.items() if i == index]:
            del self._current[group]
        for name in (ACCOUNT_HEALTH_SCORE, ACCOUNT_TOKENS):
            self.metrics.remove_gauge(name, labels={"account": str(index)})
        logger.debug(f"Forgot account {index}")

    def current_index(self, quota_group: str = DEFAULT_QUOTA_GROUP) -> int | None:
        """Account handed out by the last selection for the quota group."""
        return self._current.get(quota_group)

    def get_snapshot(self) -> dict[str, Any]:
        """
        Point-in-time view of the scheduler's per-account state.

        Returns a dict suitable for JSON serialization with structure:
        {
            "accounts": {index: {"health_score", "consecutive_failures",
                                 "tokens", "cooling_down_until"}, ...},
            "current": {quota_group: index, ...},
        }
        """
        now = self._clock()
        health = self.health.get_snapshot()
        accounts: dict[int, dict[str, Any]] = {}
        for account in self.storage.get_accounts():
            index = account.index
            entry = health.get(index)
            until = self._cooling_down_until(index)
            accounts[index] = {
                "enabled": account.enabled,
                "health_score": entry.score if entry else self.health.get_score(index),
                "consecutive_failures": entry.consecutive_failures if entry else 0,
                "tokens": self.tokens.get_tokens(index),
                "cooling_down_until": until if until > now else None,
            }
        return {"accounts": accounts, "current": dict(self._current)}

    def _runtime_state(self, index: int) -> AccountRuntimeState:
        state = self._runtime.get(index)
        if state is None:
            state = self._runtime[index] = AccountRuntimeState()
        return state


def create_scheduler(
    storage: AccountStoreProtocol,
    config: SchedulerConfig | Mapping[str, Any] | None = None,
    fetch_quota: QuotaFetcher | None = None,
    strategy: str | None = None,
    **kwargs: Any,
) -> AccountScheduler:
    """
    Factory function to create an AccountScheduler.

    Args:
        storage: Collaborator owning the account records
        config: Configuration object or parsed configuration mapping
            (defaults to SchedulerConfig())
        fetch_quota: Optional quota lookup for the preflight check
        strategy: Overrides ``config.account_selection_strategy`` when given
        **kwargs: Additional arguments passed to the AccountScheduler constructor

    Returns:
        Configured AccountScheduler instance

    Raises:
        ConfigurationError: If the configuration mapping is invalid
        ValueError: If strategy is unknown
    """
    if config is None:
        config = SchedulerConfig()
    elif not isinstance(config, SchedulerConfig):
        config = SchedulerConfig.from_dict(config)

    if strategy is not None:
        try:
            config = dataclasses.replace(
                config,
                account_selection_strategy=AccountSelectionStrategy(strategy.lower()),
            )
        except ValueError as e:
            raise ValueError(f"Unknown selection strategy: {strategy}") from e

    return AccountScheduler(config, storage, fetch_quota, **kwargs)


__all__ = [
    "DEFAULT_QUOTA_GROUP",
    "FIRST_RATE_LIMIT_SWITCH_DELAY",
    "AccountRuntimeState",
    "AccountScheduler",
    "create_scheduler",
]
