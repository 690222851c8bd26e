# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Quota types for the account scheduler.

QuotaSummary mirrors the payload returned by the provider's quota endpoint:
one entry per quota group (a model family sharing an upstream capacity pool).
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..exceptions import QuotaFetchFailedError


class QuotaGroupSummary(BaseModel):
    """Remaining capacity of one quota group."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    remaining_fraction: float | None = Field(default=None, ge=0.0, le=1.0)
    model_count: int = Field(default=0, ge=0)
    reset_time: str | None = None


class QuotaSummary(BaseModel):
    """Quota snapshot for a single account."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    groups: dict[str, QuotaGroupSummary] = Field(default_factory=dict)
    model_count: int = Field(default=0, ge=0)


@dataclass
class PreflightResult:
    """
    Outcome of a preflight quota check.

    Attributes:
        should_switch: Whether the account should be abandoned for this request
        remaining_percent: Minimum remaining percent across quota groups,
            or None when no data is available
        reason: Human-readable reason when should_switch is True
        error: The fetch failure, when the check degraded to "no data"
    """

    should_switch: bool
    remaining_percent: int | None = None
    reason: str | None = None
    error: QuotaFetchFailedError | None = None


__all__ = ["PreflightResult", "QuotaGroupSummary", "QuotaSummary"]
