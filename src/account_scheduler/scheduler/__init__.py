# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Account scheduler orchestration.

This module provides:
- AccountScheduler: Selects accounts and tracks dispatch outcomes
- create_scheduler: Factory accepting a config object or mapping
- AccountRuntimeState: Per-account state owned by the scheduler
"""

from .orchestrator import (
    DEFAULT_QUOTA_GROUP,
    FIRST_RATE_LIMIT_SWITCH_DELAY,
    AccountRuntimeState,
    AccountScheduler,
    create_scheduler,
)

__all__ = [
    "DEFAULT_QUOTA_GROUP",
    "FIRST_RATE_LIMIT_SWITCH_DELAY",
    "AccountRuntimeState",
    # Scheduler
    "AccountScheduler",
    "create_scheduler",
]
