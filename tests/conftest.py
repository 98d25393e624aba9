from datetime import datetime, timedelta, timezone

import pytest

from chordcoach.application.progress.service import ProgressService
from chordcoach.infrastructure.adapters.progress.memory_store import InMemoryProgressStore

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic scheduling tests."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def service(store, clock):
    return ProgressService(store=store, clock=clock)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and the default data file
    monkeypatch.setenv("HOME", str(home))
    for var in ("CHORDCOACH_DATA_FILE", "CHORDCOACH_BACKEND", "CHORDCOACH_WEAK_THRESHOLD"):
        monkeypatch.delenv(var, raising=False)
    return home
