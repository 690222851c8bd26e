"""
Shared fixtures for benchmark tests.
"""

import pytest

from account_scheduler.config import SchedulerConfig, TokenBucketConfig
from account_scheduler.storage.memory import InMemoryAccountStore
from account_scheduler.types.account import AccountRecord

POOL_SIZE = 10


@pytest.fixture
def benchmark_store() -> InMemoryAccountStore:
    """Pool of enabled accounts large enough to exercise every filter."""
    return InMemoryAccountStore(
        AccountRecord(index=i, email=f"bench{i}@example.com") for i in range(POOL_SIZE)
    )


@pytest.fixture
def benchmark_config() -> SchedulerConfig:
    """Configuration with buckets that never run dry during a benchmark."""
    return SchedulerConfig(
        token_bucket=TokenBucketConfig(max_tokens=1_000_000, initial_tokens=1_000_000),
    )
