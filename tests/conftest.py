"""Pytest configuration and shared fixtures."""

import pytest

from ctrlw.auth.credentials import ScryptCredentialStore


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from ctrlw.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def credentials() -> ScryptCredentialStore:
    """Scrypt store with a tiny cost factor so tests stay fast."""
    return ScryptCredentialStore(n=2**4, r=8, p=1)


@pytest.fixture
def direct_call():
    """Store caller without timeout or retry, for deterministic tests."""

    async def call(op):
        return await op()

    return call
