# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Protocol definitions for scheduler collaborators.

Available protocols:
- AccountStoreProtocol: Interface for the storage collaborator owning accounts

Supporting types:
- Clock: Zero-argument callable returning epoch seconds
- QuotaFetcher: Async callable returning an account's quota summary
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..types.account import AccountRecord
from ..types.quota import QuotaSummary
from .storage import AccountStoreProtocol

Clock = Callable[[], float]
"""Source of the current time in epoch seconds (``time.time`` in production)."""

QuotaFetcher = Callable[
    [AccountRecord], Awaitable[QuotaSummary | Mapping[str, Any] | None]
]
"""Fetches the current quota summary for an account from the provider API."""

__all__ = [
    "AccountStoreProtocol",
    "Clock",
    "QuotaFetcher",
]
