import itertools
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache

from mines.engine import GameSessionEngine
from mines.events import RecordingNotifier
from mines.policy import ControlledLossPolicy
from mines.scheduler import RoundScheduler
from mines.store import GameSessionStore
from wallets.models import Wallet

_user_seq = itertools.count(1)


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    def _make(balance="200.00", is_staff=False, **extra):
        n = next(_user_seq)
        user = get_user_model().objects.create_user(
            username=f"player{n}",
            email=f"player{n}@minex.test",
            password="pw-123456",
            is_staff=is_staff,
            **extra,
        )
        Wallet.objects.filter(user=user).update(balance=Decimal(balance))
        return user

    return _make


@pytest.fixture
def player(make_user):
    return make_user()


@pytest.fixture
def house(make_user):
    return make_user(balance="0.00", is_staff=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return GameSessionStore()


@pytest.fixture
def scheduler(store, notifier):
    return RoundScheduler(
        store=store,
        notifier=notifier,
        period_seconds=60,
        mine_count=3,
        save_attempts=3,
        retry_delay=0,
    )


@pytest.fixture
def engine(db, store, scheduler, notifier):
    scheduler.rotate()
    return GameSessionEngine(
        store=store,
        scheduler=scheduler,
        notifier=notifier,
        policy=ControlledLossPolicy(),
    )


def balance_of(user) -> Decimal:
    return Wallet.objects.get(user=user).balance


def safe_cells(session) -> list:
    return [cell for cell in range(25) if cell not in session.mine_positions]
