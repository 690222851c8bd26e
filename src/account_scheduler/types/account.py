# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Account types for the account scheduler.

AccountRecord is the storage collaborator's view of a credential; the
scheduler only reads it. AccountWithMetrics is the per-selection snapshot the
strategies operate on.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AccountRecord(BaseModel):
    """
    Durable account record supplied by the storage collaborator.

    Records are opaque to the scheduler: credential material and any other
    storage-specific fields are carried through as extras and never inspected.
    camelCase field names (``lastUsed``, ``rateLimitResetTimes``) are accepted
    so records loaded from the plugin's JSON storage validate directly.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    index: int = Field(ge=0)
    last_used: float = 0.0
    enabled: bool = True
    rate_limit_reset_times: dict[str, float] = Field(default_factory=dict)
    email: str | None = None

    def rate_limit_reset_at(self, quota_group: str) -> float | None:
        """Epoch seconds at which the quota group resets, if it is limited."""
        return self.rate_limit_reset_times.get(quota_group)

    def is_rate_limited(self, quota_group: str, now: float) -> bool:
        """Check if the quota group is still inside its rate-limit window."""
        reset_at = self.rate_limit_reset_at(quota_group)
        return reset_at is not None and now < reset_at


@dataclass(frozen=True)
class AccountWithMetrics:
    """
    Live snapshot of one account used by the selection strategies.

    Attributes:
        index: Account index (0..N-1)
        last_used: Epoch seconds of the last successful dispatch
        health_score: Current health score after passive recovery
        is_rate_limited: The requested quota group has not reset yet
        is_cooling_down: Excluded by a quota-guard cooldown or failure TTL
    """

    index: int
    last_used: float
    health_score: float
    is_rate_limited: bool = False
    is_cooling_down: bool = False

    @property
    def is_available(self) -> bool:
        return not self.is_rate_limited and not self.is_cooling_down


__all__ = ["AccountRecord", "AccountWithMetrics"]
