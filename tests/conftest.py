"""
Shared fixtures for the account scheduler tests.

FakeClock stands in for ``time.time`` and advances only when told to, so
decay, TTL and wait-loop behaviour is deterministic. ``fake_sleep`` advances
the same clock instead of suspending.
"""

import random

import pytest

from account_scheduler.storage.memory import InMemoryAccountStore
from account_scheduler.types.account import AccountRecord

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def fake_sleep(clock):
    """Async sleep that advances the fake clock and records every delay."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)
        clock.advance(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep


@pytest.fixture
def store() -> InMemoryAccountStore:
    """Three enabled accounts, never used."""
    return InMemoryAccountStore(
        [
            AccountRecord(index=0, email="alice@example.com"),
            AccountRecord(index=1, email="bob@example.com"),
            AccountRecord(index=2, email="carol@example.com"),
        ]
    )
