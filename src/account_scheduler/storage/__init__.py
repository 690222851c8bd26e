# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Storage implementations for account records."""

from .memory import InMemoryAccountStore

__all__ = ["InMemoryAccountStore"]
