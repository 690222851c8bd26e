# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Protocol for the account storage collaborator."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..types.account import AccountRecord


@runtime_checkable
class AccountStoreProtocol(Protocol):
    """
    Minimal protocol for the storage collaborator that owns account records.

    The scheduler never writes files or touches credential material. It reads
    records and writes back exactly two things: when an account was last used,
    and when a quota group on an account resets. How (and whether) those writes
    are persisted is up to the implementation.

    All methods are synchronous: they are called from inside outcome
    reporting, which must not suspend.
    """

    def get_accounts(self) -> Sequence[AccountRecord]:
        """Return all known accounts, enabled or not."""
        ...

    def mark_used(self, index: int, used_at: float) -> None:
        """Record a successful dispatch on the account."""
        ...

    def set_rate_limit_reset(
        self, index: int, quota_group: str, reset_at: float
    ) -> None:
        """Record that the quota group on the account is limited until reset_at."""
        ...
