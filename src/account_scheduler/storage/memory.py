# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
InMemoryAccountStore for the Account Scheduler

This module provides an in-memory implementation of AccountStoreProtocol.
Perfect for testing, development, and single-process applications where the
account pool is configured in code.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from ..types.account import AccountRecord

logger = logging.getLogger(__name__)


class InMemoryAccountStore:
    """
    A dict-backed account store.

    Key Features:
    - Accounts keyed by their index, returned in index order
    - Rate-limit reset times stored per quota group on the record
    - No persistence: state is lost when the process exits

    Note:
        Records are replaced, not mutated, on every write so that snapshots
        previously returned by ``get_accounts`` are never changed under the
        caller.
    """

    def __init__(self, accounts: Iterable[AccountRecord] = ()) -> None:
        self._accounts: dict[int, AccountRecord] = {}
        for account in accounts:
            self.add(account)

    def add(self, account: AccountRecord) -> None:
        """
        Add an account.

        Raises:
            ValueError: If an account with the same index already exists.
        """
        if account.index in self._accounts:
            raise ValueError(f"Account {account.index} already exists")
        self._accounts[account.index] = account
        logger.debug(f"Added account {account.index}")

    def add_account(self, email: str | None = None, **extra: Any) -> AccountRecord:
        """Create and add an account at the next free index."""
        index = max(self._accounts, default=-1) + 1
        account = AccountRecord(index=index, email=email, **extra)
        self.add(account)
        return account

    def remove(self, index: int) -> AccountRecord | None:
        """Remove an account, returning it if it existed."""
        return self._accounts.pop(index, None)

    def get(self, index: int) -> AccountRecord | None:
        return self._accounts.get(index)

    def set_enabled(self, index: int, enabled: bool) -> None:
        self._update(index, enabled=enabled)

    def get_accounts(self) -> Sequence[AccountRecord]:
        return [self._accounts[i] for i in sorted(self._accounts)]

    def mark_used(self, index: int, used_at: float) -> None:
        self._update(index, last_used=used_at)

    def set_rate_limit_reset(
        self, index: int, quota_group: str, reset_at: float
    ) -> None:
        account = self._require(index)
        reset_times = {**account.rate_limit_reset_times, quota_group: reset_at}
        self._update(index, rate_limit_reset_times=reset_times)

    def clear_rate_limit_reset(self, index: int, quota_group: str) -> None:
        account = self._require(index)
        reset_times = dict(account.rate_limit_reset_times)
        reset_times.pop(quota_group, None)
        self._update(index, rate_limit_reset_times=reset_times)

    def _require(self, index: int) -> AccountRecord:
        account = self._accounts.get(index)
        if account is None:
            raise KeyError(f"Unknown account index: {index}")
        return account

    def _update(self, index: int, **changes: Any) -> None:
        self._accounts[index] = self._require(index).model_copy(update=changes)

    def __len__(self) -> int:
        return len(self._accounts)


__all__ = ["InMemoryAccountStore"]
