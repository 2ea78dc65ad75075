import threading

import pytest

from ratekeeper.infrastructure.memory import InMemoryStorage


class FakeClock:
    """Deterministic time source, seconds since the epoch."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds


@pytest.fixture
def clock():
    """Fixture providing a fake clock starting on a minute boundary."""
    return FakeClock(1_000_020.0)


@pytest.fixture
def storage(clock):
    """Fixture providing an in-memory storage sharing the fake clock."""
    return InMemoryStorage(clock=clock)


@pytest.fixture
def fixed_window_config():
    return {"id": "api", "strategy": "fixed_window", "limit": 10, "interval": "1 minute"}


@pytest.fixture
def token_bucket_config():
    return {
        "id": "uploads",
        "strategy": "token_bucket",
        "limit": 10,
        "rate": {"amount": 5, "interval": "10 seconds"},
    }
