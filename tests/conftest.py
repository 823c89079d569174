"""
Shared fixtures for authcookie tests.
"""

import pytest

from authcookie.core.config import AuthPolicy
from authcookie.tokenstore.memory import MemoryTokenStore


SECRET = "s3cr3t"
T0 = 1_700_000_000  # aligned to a 5 second window


class FakeClock:
    """Settable clock for stores and dispatchers."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryTokenStore(clock=clock)


@pytest.fixture
def policy():
    return AuthPolicy(
        cookie_name="auth",
        secret=SECRET,
        timeout=86400,
        cookie_options="Path=/; HttpOnly",
    )
