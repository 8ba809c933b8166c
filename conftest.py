"""Shared fixtures: isolated settings store, fake timer clock."""

from datetime import date

import pytest

from settings import KeyValueStore
from time_service import TimeService


class FakeScheduler:
    """Deterministic stand-in for ``Tk.after``: time only moves on ``advance``."""

    def __init__(self) -> None:
        self.now = 0
        self._seq = 0
        self.pending: dict[int, tuple[int, object]] = {}

    def call_later(self, delay_ms, callback):
        self._seq += 1
        self.pending[self._seq] = (self.now + delay_ms, callback)
        return self._seq

    def cancel(self, handle) -> None:
        self.pending.pop(handle, None)

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = [(t, h) for h, (t, _cb) in self.pending.items() if t <= target]
            if not due:
                break
            t, handle = min(due)
            _t, callback = self.pending.pop(handle)
            self.now = t
            callback()
        self.now = target


@pytest.fixture()
def store(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setenv("TIMESCHEDULER_SETTINGS", str(path))
    return KeyValueStore(str(path))


@pytest.fixture()
def time_service():
    return TimeService()


@pytest.fixture()
def scheduler():
    return FakeScheduler()


@pytest.fixture()
def today():
    return date(2026, 10, 19)
