from __future__ import annotations

import pytest

import tripwire.circuit_breaker.breaker as breaker_mod
from tests.tripwire.support.fakes import FakeClock, FakeLogger, ManualSleep


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze breaker time so tests advance it explicitly."""
    clock = FakeClock()
    monkeypatch.setattr(breaker_mod, "_utcnow", clock.now)
    return clock


@pytest.fixture
def manual_sleep() -> ManualSleep:
    """Provide a cooldown sleep that only ends when the test says so."""
    return ManualSleep()
