"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast tests without external services")


@pytest.fixture
def clock() -> FakeClock:
    """Simulated clock for TTL tests."""
    return FakeClock()
