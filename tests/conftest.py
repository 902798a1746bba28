"""Shared test fixtures for the Gutshof assistant test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ["WARMUP_ON_STARTUP"] = "false"
    os.environ["METRICS_ENABLED"] = "false"


class FakeClock:
    """A settable ``clock`` for the caches."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    # A Tuesday afternoon in Berlin (CET, UTC+1).
    return FakeClock(datetime(2026, 2, 17, 13, 7, 42, tzinfo=UTC))
