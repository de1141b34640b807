"""Shared pytest fixtures and configuration."""

from datetime import UTC, datetime, timedelta

import pytest


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


class FakeClock:
    """Settable time source for deadline and timestamp tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2026-03-01 09:00 UTC."""
    return FakeClock(datetime(2026, 3, 1, 9, 0, tzinfo=UTC))
