# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the account scheduler.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from SchedulerError, making it easy to catch
all scheduler-related exceptions with a single except clause.

Rate limits are deliberately absent: a 429 from the upstream is reported to
the scheduler as an outcome, never raised by it.
"""


class SchedulerError(Exception):
    """Base exception for all account scheduler errors.

    Example:
        try:
            selection = await scheduler.select_account("claude")
        except SchedulerError as e:
            logger.error(f"Account scheduling failed: {e}")
    """

    pass


class NoAccountAvailableError(SchedulerError):
    """Raised when every account was filtered out by the selection strategy.

    This is recoverable: the caller may queue the request, retry later, or
    surface an error to its own user. It is only raised when waiting for an
    account is disabled (``quota_guard.wait_when_no_account = False``).

    Attributes:
        quota_group: The quota group the selection was made for.
        retry_after: Seconds until the soonest account is expected to become
            available again, or None if that cannot be determined.

    Example:
        try:
            selection = await scheduler.select_account()
        except NoAccountAvailableError as e:
            if e.retry_after is not None:
                await asyncio.sleep(e.retry_after)
    """

    def __init__(
        self,
        message: str = "No account available",
        quota_group: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.quota_group = quota_group
        self.retry_after = retry_after


class WaitTimeoutExceededError(SchedulerError):
    """Raised when no account became available within the configured bound.

    Upstream quota resets can be hours away; this error keeps callers from
    stalling silently. It is fatal to the current request.

    Attributes:
        elapsed: Seconds spent waiting before giving up (0.0 when the bound
            was known to be unreachable up front).
        max_wait: The configured wait bound in seconds.
        quota_group: The quota group the selection was made for.
    """

    def __init__(
        self,
        elapsed: float,
        max_wait: float,
        quota_group: str | None = None,
        message: str | None = None,
    ):
        if message is None:
            message = (
                f"No account available after waiting {elapsed:.1f}s "
                f"(max wait: {max_wait:.0f}s)"
            )
        super().__init__(message)
        self.elapsed = elapsed
        self.max_wait = max_wait
        self.quota_group = quota_group


class QuotaFetchFailedError(SchedulerError):
    """A quota lookup for a preflight check failed.

    Never propagated out of ``preflight_quota_check``: it is built, logged and
    attached to the PreflightResult so that traffic falls back to reactive
    rate-limit handling.

    Attributes:
        account_index: Index of the account whose quota could not be fetched.
        cause: The original exception raised by the quota fetcher.
    """

    def __init__(self, account_index: int, cause: BaseException | None = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to fetch quota for account {account_index}{detail}")
        self.account_index = account_index
        self.cause = cause


class ConfigurationError(SchedulerError):
    """Raised when configuration is invalid.

    Common causes include:
    - Unknown option names in a configuration mapping
    - Unknown selection strategy or scheduling mode names
    - Values outside their allowed range

    Example:
        try:
            config = SchedulerConfig.from_dict(raw)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise SystemExit(1)
    """

    pass


__all__ = [
    "ConfigurationError",
    "NoAccountAvailableError",
    "QuotaFetchFailedError",
    "SchedulerError",
    "WaitTimeoutExceededError",
]
