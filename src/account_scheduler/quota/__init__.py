# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Quota guard: TTL-cached preflight quota checks and display helpers."""

from .guard import (
    CacheEntry,
    QuotaGuardCache,
    calculate_min_remaining_percent,
    format_wait_time,
    mask_email,
    preflight_quota_check,
)

__all__ = [
    "CacheEntry",
    "QuotaGuardCache",
    "calculate_min_remaining_percent",
    "format_wait_time",
    "mask_email",
    "preflight_quota_check",
]
