# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Type definitions and data models."""

from .account import AccountRecord, AccountWithMetrics
from .outcome import AccountSelection, DispatchOutcome, OutcomeKind
from .quota import PreflightResult, QuotaGroupSummary, QuotaSummary

__all__ = [
    # Accounts
    "AccountRecord",
    "AccountSelection",
    "AccountWithMetrics",
    # Outcomes
    "DispatchOutcome",
    "OutcomeKind",
    # Quota
    "PreflightResult",
    "QuotaGroupSummary",
    "QuotaSummary",
]
