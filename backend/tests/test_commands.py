from io import StringIO

import pytest
from django.core.management import call_command

from mines.engine import GameSessionEngine
from mines.management.commands import run_mines_rounds
from mines.models import Round


class FakeLock:
    held_elsewhere = False

    def __init__(self, key, ttl_seconds, client=None):
        self.key = key

    def acquire(self):
        return not self.held_elsewhere

    def renew(self):
        # first heartbeat finds the lock taken over
        return False

    def release(self):
        return True


@pytest.fixture
def fake_lock(monkeypatch):
    class Lock(FakeLock):
        pass

    monkeypatch.setattr(run_mines_rounds, "SchedulerLock", Lock)
    monkeypatch.setattr(run_mines_rounds.signal, "signal", lambda *args: None)
    return Lock


def test_exits_when_another_scheduler_runs(fake_lock):
    fake_lock.held_elsewhere = True
    out = StringIO()

    call_command("run_mines_rounds", stdout=out)

    assert "Another scheduler already running" in out.getvalue()


@pytest.mark.django_db
def test_runs_rounds_until_lock_is_lost(fake_lock, store, scheduler, notifier, monkeypatch):
    engine = GameSessionEngine(store, scheduler, notifier)
    monkeypatch.setattr(run_mines_rounds, "get_engine", lambda: engine)
    out = StringIO()

    call_command("run_mines_rounds", "--heartbeat-interval", "0", stdout=out)

    output = out.getvalue()
    assert "Lock acquired" in output
    assert "First round" in output
    assert "Scheduler lock lost" in output
    assert "Lock released" in output
    assert not scheduler.is_running
    assert Round.objects.count() == 1
