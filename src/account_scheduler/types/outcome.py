# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Dispatch outcome and selection result types.

These are the two values that cross the scheduler's public boundary: an
AccountSelection goes out to the caller, a DispatchOutcome comes back after
the request completes.
"""

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(Enum):
    """Result category of a dispatched request."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    FAILURE = "failure"


@dataclass(frozen=True)
class DispatchOutcome:
    """
    Outcome reported back to the scheduler after a dispatch.

    Attributes:
        kind: Result category
        retry_after: Upstream-provided reset delay in seconds (rate limits only)
    """

    kind: OutcomeKind
    retry_after: float | None = None

    def __post_init__(self) -> None:
        if self.retry_after is not None:
            if self.kind is not OutcomeKind.RATE_LIMITED:
                raise ValueError("retry_after only applies to rate-limited outcomes")
            if self.retry_after < 0:
                raise ValueError("retry_after must be non-negative")

    @classmethod
    def success(cls) -> "DispatchOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def rate_limited(cls, retry_after: float | None = None) -> "DispatchOutcome":
        return cls(OutcomeKind.RATE_LIMITED, retry_after)

    @classmethod
    def failure(cls) -> "DispatchOutcome":
        return cls(OutcomeKind.FAILURE)


@dataclass(frozen=True)
class AccountSelection:
    """
    Account chosen for one request.

    A selection is advisory: other requests may change account state before
    dispatch. The one token consumed on its behalf is the only reservation.

    Attributes:
        index: Selected account index
        quota_group: Quota group the selection was made for
        wait_seconds: Delay the caller should observe before dispatching
        switched: True when the selection moved away from the previous account
        reason: Why the scheduler switched or waited, if it did
    """

    index: int
    quota_group: str = "default"
    wait_seconds: float = 0.0
    switched: bool = False
    reason: str | None = None


__all__ = ["AccountSelection", "DispatchOutcome", "OutcomeKind"]
