import logging
import threading
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.db import DatabaseError

from mines.events import AutoCashout, RecordingNotifier, RoundMineLayout, RoundUpdate
from mines.models import GameSession, Round
from mines.policy import FairPolicy
from mines.scheduler import CACHE_KEY, RoundScheduler, RoundSnapshot, make_round_id
from mines.store import GameSessionStore

from .conftest import balance_of, safe_cells

fair = FairPolicy()


def test_make_round_id_formats_timestamp():
    moment = datetime(2026, 3, 4, 5, 6, 7, tzinfo=dt_timezone.utc)
    assert make_round_id(moment) == "20260304050607"
    assert make_round_id(moment, "20260304050600") == "20260304050607"


def test_make_round_id_bumps_past_previous():
    moment = datetime(2026, 3, 4, 5, 6, 7, tzinfo=dt_timezone.utc)
    assert make_round_id(moment, "20260304050607") == "20260304050608"
    assert make_round_id(moment, "20260304050610") == "20260304050611"


def test_snapshot_survives_the_cache():
    snapshot = RoundSnapshot(
        round_id="20260304050607",
        mine_positions=(1, 7, 19),
        mine_count=3,
        started_at=datetime(2026, 3, 4, 5, 6, 7, tzinfo=dt_timezone.utc),
        persisted=False,
    )
    assert RoundSnapshot.from_cache(snapshot.to_cache()) == snapshot


@pytest.mark.django_db
def test_rotate_creates_active_round(scheduler, notifier):
    snapshot = scheduler.rotate()

    row = Round.objects.get(round_id=snapshot.round_id)
    assert row.status == Round.STATUS_ACTIVE
    assert row.mine_count == 3
    assert row.mine_positions == list(snapshot.mine_positions)
    assert snapshot.persisted is True
    assert scheduler.current == snapshot

    update, = notifier.of_type(RoundUpdate)
    assert update.current_round_id == snapshot.round_id
    assert update.remaining_ms == 60_000
    assert update.next_round_id == scheduler.next_round_id(snapshot)

    layout_event, = notifier.of_type(RoundMineLayout)
    assert layout_event.admin_only is True
    assert layout_event.positions == list(snapshot.mine_positions)


@pytest.mark.django_db
def test_rotate_ends_previous_round(scheduler):
    first = scheduler.rotate()
    second = scheduler.rotate()
    third = scheduler.rotate()

    assert first.round_id < second.round_id < third.round_id
    assert Round.objects.filter(status=Round.STATUS_ACTIVE).count() == 1
    ended = Round.objects.get(round_id=first.round_id)
    assert ended.status == Round.STATUS_ENDED
    assert ended.end_time is not None
    assert Round.objects.get(round_id=third.round_id).status == Round.STATUS_ACTIVE


@pytest.mark.django_db
def test_next_round_id_is_one_period_later(scheduler):
    snapshot = scheduler.rotate()
    expected = (snapshot.started_at + timedelta(seconds=60)).strftime("%Y%m%d%H%M%S")
    assert scheduler.next_round_id(snapshot) == max(expected, str(int(snapshot.round_id) + 1))


@pytest.mark.django_db
def test_remaining_ms_counts_down(scheduler):
    snapshot = scheduler.rotate()
    remaining = scheduler.remaining_ms(snapshot)
    assert 0 < remaining <= 60_000

    stale = RoundSnapshot(
        round_id="20000101000000",
        mine_positions=(1, 2, 3),
        mine_count=3,
        started_at=snapshot.started_at - timedelta(minutes=5),
    )
    assert scheduler.remaining_ms(stale) == 0


@pytest.mark.django_db
def test_rotation_auto_cashes_out_open_sessions(scheduler, store, notifier, player, make_user):
    first = scheduler.rotate()
    session = store.start_session(player, Decimal("100"), 3, first.round_id)
    store.reveal_cell(session.id, player, safe_cells(session)[0], fair)

    idle = make_user()
    idle_session = store.start_session(idle, Decimal("50"), 3, first.round_id)

    loser = make_user()
    lost = store.start_session(loser, Decimal("50"), 3, first.round_id)
    store.reveal_cell(lost.id, loser, lost.mine_positions[0], fair)

    scheduler.rotate()

    session.refresh_from_db()
    assert session.status == GameSession.STATUS_WON
    assert session.end_reason == GameSession.REASON_AUTO_CASHOUT
    assert session.winnings == Decimal("113.64")
    assert balance_of(player) == Decimal("213.64")

    idle_session.refresh_from_db()
    assert idle_session.winnings == Decimal("50.00")
    assert balance_of(idle) == Decimal("200.00")

    lost.refresh_from_db()
    assert lost.status == GameSession.STATUS_LOST
    assert balance_of(loser) == Decimal("150.00")

    events = notifier.of_type(AutoCashout)
    assert {e.session_id for e in events} == {str(session.id), str(idle_session.id)}
    assert all(e.reason == "Round ended - auto cashout" for e in events)


@pytest.mark.django_db
def test_settle_round_is_idempotent(scheduler, store, notifier, player):
    first = scheduler.rotate()
    session = store.start_session(player, Decimal("100"), 3, first.round_id)
    store.reveal_cell(session.id, player, safe_cells(session)[0], fair)
    scheduler.rotate()

    assert scheduler.settle_round(first.round_id) == []
    assert balance_of(player) == Decimal("213.64")
    assert len(notifier.of_type(AutoCashout)) == 1


@pytest.mark.django_db
def test_rotation_sweeps_sessions_on_unknown_rounds(scheduler, store, player):
    orphan = store.start_session(player, Decimal("40"), 3, "19990101000000")
    scheduler.rotate()
    orphan.refresh_from_db()
    assert orphan.status == GameSession.STATUS_WON
    assert balance_of(player) == Decimal("200.00")


@pytest.mark.django_db
def test_round_save_failure_keeps_in_memory_round(scheduler, notifier, monkeypatch, caplog):
    calls = []

    def failing_create(**kwargs):
        calls.append(kwargs)
        raise DatabaseError("disk full")

    monkeypatch.setattr(Round.objects, "create", failing_create)

    with caplog.at_level(logging.WARNING, logger="mines"):
        snapshot = scheduler.rotate()

    assert len(calls) == 3
    assert snapshot.persisted is False
    assert scheduler.current == snapshot
    assert not Round.objects.filter(round_id=snapshot.round_id).exists()
    assert notifier.of_type(RoundUpdate)[-1].current_round_id == snapshot.round_id

    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert errors and "persistence_failure" in errors[0].getMessage()


@pytest.mark.django_db
def test_bets_still_land_on_unpersisted_round(scheduler, store, player, monkeypatch):
    def failing_create(**kwargs):
        raise DatabaseError("disk full")

    monkeypatch.setattr(Round.objects, "create", failing_create)
    snapshot = scheduler.rotate()
    monkeypatch.undo()

    session = store.start_session(player, Decimal("100"), 3, snapshot.round_id)
    assert session.round_id == snapshot.round_id

    scheduler.rotate()
    session.refresh_from_db()
    assert session.status == GameSession.STATUS_WON


@pytest.mark.django_db
def test_other_processes_read_the_cached_round(scheduler):
    snapshot = scheduler.rotate()
    reader = RoundScheduler(store=GameSessionStore(), notifier=RecordingNotifier())

    assert reader.current.round_id == snapshot.round_id
    assert reader.current.mine_positions == snapshot.mine_positions

    cache.delete(CACHE_KEY)
    assert reader.current.round_id == snapshot.round_id


@pytest.mark.django_db
def test_no_round_yet(scheduler):
    assert scheduler.current is None
    assert scheduler.remaining_ms() == 0


class _CountingNotifier(RecordingNotifier):
    def __init__(self, wanted):
        super().__init__()
        self.wanted = wanted
        self.done = threading.Event()

    def publish(self, event):
        super().publish(event)
        if len(self.of_type(RoundUpdate)) >= self.wanted:
            self.done.set()


@pytest.mark.django_db(transaction=True)
def test_timer_rotates_until_stopped(transactional_db):
    notifier = _CountingNotifier(wanted=3)
    scheduler = RoundScheduler(
        store=GameSessionStore(),
        notifier=notifier,
        period_seconds=0.05,
        retry_delay=0,
    )

    first = scheduler.start()
    try:
        assert scheduler.is_running
        assert notifier.done.wait(timeout=10)
    finally:
        scheduler.stop(timeout=5)

    assert not scheduler.is_running
    assert first.round_id == notifier.of_type(RoundUpdate)[0].current_round_id
    assert Round.objects.count() >= 3
    assert Round.objects.filter(status=Round.STATUS_ACTIVE).count() == 1


class BrokenLayerNotifier(RecordingNotifier):
    """Records every event, then fails like a channel layer that went away."""

    def publish(self, event):
        super().publish(event)
        raise ConnectionError("channel layer down")


@pytest.mark.django_db
def test_rotation_survives_a_broken_channel_layer(store, player, caplog):
    notifier = BrokenLayerNotifier()
    scheduler = RoundScheduler(store=store, notifier=notifier, period_seconds=60, mine_count=3, retry_delay=0)

    first = scheduler.rotate()
    session = store.start_session(player, Decimal("100"), 3, first.round_id)
    store.reveal_cell(session.id, player, safe_cells(session)[0], fair)

    caplog.clear()
    with caplog.at_level(logging.ERROR, logger="mines"):
        second = scheduler.rotate()

    assert second.round_id > first.round_id
    assert scheduler.current == second
    assert Round.objects.get(round_id=second.round_id).status == Round.STATUS_ACTIVE
    assert Round.objects.get(round_id=first.round_id).status == Round.STATUS_ENDED

    session.refresh_from_db()
    assert session.status == GameSession.STATUS_WON
    assert balance_of(player) == Decimal("213.64")

    # every event was still attempted, each failure logged
    assert [type(e) for e in notifier.events[-3:]] == [AutoCashout, RoundUpdate, RoundMineLayout]
    failures = [r for r in caplog.records if "Publishing" in r.getMessage()]
    assert len(failures) == 3


@pytest.mark.django_db
def test_settle_round_publishes_best_effort(store, player):
    notifier = BrokenLayerNotifier()
    scheduler = RoundScheduler(store=store, notifier=notifier, period_seconds=60, mine_count=3, retry_delay=0)
    session = store.start_session(player, Decimal("40"), 3, "20260101120000")

    results = scheduler.settle_round("20260101120000")

    assert [r.session.id for r in results] == [session.id]
    assert notifier.of_type(AutoCashout)[0].session_id == str(session.id)
    assert balance_of(player) == Decimal("200.00")
