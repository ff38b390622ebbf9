# mines/scheduler.py
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from . import layout
from .events import AutoCashout, Notifier, RoundMineLayout, RoundUpdate, publish_safely
from .exceptions import PersistenceFailure
from .models import GameSession, Round
from .store import GameSessionStore

logger = logging.getLogger(__name__)

ROUND_ID_FORMAT = "%Y%m%d%H%M%S"
CACHE_KEY = "mines:current_round"


def make_round_id(moment: datetime, previous: str | None = None) -> str:
    """
    Timestamp id for a round starting at ``moment``. Bumped past ``previous``
    when the clock has not moved on, so ids stay unique and increasing.
    """
    candidate = moment.strftime(ROUND_ID_FORMAT)
    if previous and candidate <= previous:
        candidate = str(int(previous) + 1)
    return candidate


@dataclass(frozen=True)
class RoundSnapshot:
    round_id: str
    mine_positions: tuple
    mine_count: int
    started_at: datetime
    status: str = Round.STATUS_ACTIVE
    persisted: bool = True

    def to_cache(self) -> dict:
        data = asdict(self)
        data["mine_positions"] = list(self.mine_positions)
        data["started_at"] = self.started_at.isoformat()
        return data

    @classmethod
    def from_cache(cls, data: dict) -> "RoundSnapshot":
        return cls(
            round_id=data["round_id"],
            mine_positions=tuple(data["mine_positions"]),
            mine_count=data["mine_count"],
            started_at=parse_datetime(data["started_at"]),
            status=data.get("status", Round.STATUS_ACTIVE),
            persisted=data.get("persisted", True),
        )

    @classmethod
    def from_model(cls, round_obj: Round) -> "RoundSnapshot":
        return cls(
            round_id=round_obj.round_id,
            mine_positions=tuple(round_obj.mine_positions),
            mine_count=round_obj.mine_count,
            started_at=round_obj.start_time,
            status=round_obj.status,
        )


class RoundScheduler:
    """
    Owns the global round lifecycle.

    The process that calls ``start()`` (or ``rotate()``) owns the in-memory
    current round; it mirrors every new round into the cache so web workers
    read the same pointer even when the database write failed. Processes that
    never rotate read that mirror, then fall back to the newest active row.
    """

    def __init__(
        self,
        store: GameSessionStore,
        notifier: Notifier,
        period_seconds: float | None = None,
        mine_count: int | None = None,
        save_attempts: int | None = None,
        retry_delay: float | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.period_seconds = period_seconds if period_seconds is not None else settings.MINES_ROUND_SECONDS
        self.mine_count = mine_count if mine_count is not None else settings.MINES_ROUND_MINE_COUNT
        self.save_attempts = save_attempts if save_attempts is not None else settings.MINES_ROUND_SAVE_ATTEMPTS
        self.retry_delay = retry_delay if retry_delay is not None else settings.MINES_ROUND_SAVE_RETRY_DELAY
        self.rng = rng

        # Held by rotation and by bet placement
        self.lock = threading.RLock()

        self._current: RoundSnapshot | None = None
        self._owner = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ===============================
    # TIMER
    # ===============================

    def start(self) -> RoundSnapshot:
        with self.lock:
            if self.is_running:
                return self._current
            self._stop.clear()
            snapshot = self.rotate()
            self._thread = threading.Thread(target=self._run, name="mines-round-timer", daemon=True)
            self._thread.start()
        logger.info("Round timer armed (period=%ss)", self.period_seconds)
        return snapshot

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("Round timer stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self):
        while not self._stop.wait(self.period_seconds):
            try:
                self.rotate()
            except Exception:
                logger.exception("Round rotation failed; retrying next tick")

    # ===============================
    # ROTATION
    # ===============================

    def rotate(self) -> RoundSnapshot:
        with self.lock:
            self._owner = True
            now = timezone.now()
            previous = self._current
            last_id = previous.round_id if previous else self._latest_round_id()
            new_id = make_round_id(now, last_id)

            if previous:
                logger.info("Round %s ending, starting round %s", previous.round_id, new_id)

            ended_ids = self._end_active_rounds(previous, now)
            settled = []
            for round_id in self._abandoned_round_ids(ended_ids, new_id):
                settled.extend(self.settle_round(round_id, publish=False))

            positions = layout.generate(self.mine_count, rng=self.rng)
            persisted = self._save_with_retry(
                lambda: Round.objects.create(
                    round_id=new_id,
                    mine_count=self.mine_count,
                    mine_positions=positions,
                    start_time=now,
                    status=Round.STATUS_ACTIVE,
                ),
                f"round {new_id}",
            )
            snapshot = RoundSnapshot(
                round_id=new_id,
                mine_positions=tuple(positions),
                mine_count=self.mine_count,
                started_at=now,
                persisted=persisted,
            )
            self._current = snapshot
            cache.set(CACHE_KEY, snapshot.to_cache(), timeout=max(int(self.period_seconds * 3), 1))

        logger.info("New round started: %s", new_id)
        self._publish_settlements(settled)
        self._announce(snapshot)
        return snapshot

    def settle_round(self, round_id: str, publish: bool = True) -> list:
        """
        Auto-cashout every still-active session of ``round_id``. Safe to call
        again: sessions already resolved are skipped.
        """
        results = []
        for session_id in self.store.active_session_ids(round_id):
            try:
                result = self.store.auto_cash_out(session_id)
            except DatabaseError:
                logger.exception("Auto-cashout failed for session %s; will retry next rotation", session_id)
                continue
            if result is not None:
                results.append(result)

        if results:
            logger.info("Auto-cashed out %s session(s) from round %s", len(results), round_id)
        if publish:
            self._publish_settlements(results)
        return results

    # ===============================
    # CURRENT ROUND
    # ===============================

    @property
    def current(self) -> RoundSnapshot | None:
        if self._owner:
            return self._current
        return self._load_shared()

    def remaining_ms(self, snapshot: RoundSnapshot | None = None) -> int:
        snapshot = snapshot or self.current
        if snapshot is None:
            return 0
        elapsed = (timezone.now() - snapshot.started_at).total_seconds()
        return max(0, int((self.period_seconds - elapsed) * 1000))

    def next_round_id(self, snapshot: RoundSnapshot) -> str:
        return make_round_id(
            snapshot.started_at + timedelta(seconds=self.period_seconds),
            snapshot.round_id,
        )

    def round_update(self, snapshot: RoundSnapshot, remaining_ms: int | None = None) -> RoundUpdate:
        return RoundUpdate(
            current_round_id=snapshot.round_id,
            next_round_id=self.next_round_id(snapshot),
            remaining_ms=self.remaining_ms(snapshot) if remaining_ms is None else remaining_ms,
            started_at=snapshot.started_at,
        )

    # ===============================
    # HELPERS
    # ===============================

    def _announce(self, snapshot: RoundSnapshot):
        publish_safely(
            self.notifier,
            self.round_update(snapshot, remaining_ms=int(self.period_seconds * 1000)),
        )
        publish_safely(
            self.notifier,
            RoundMineLayout(round_id=snapshot.round_id, positions=list(snapshot.mine_positions)),
        )

    def _publish_settlements(self, results: list):
        for result in results:
            publish_safely(
                self.notifier,
                AutoCashout(session_id=str(result.session.id), winnings=result.winnings),
            )

    def _load_shared(self) -> RoundSnapshot | None:
        cached = cache.get(CACHE_KEY)
        if cached:
            return RoundSnapshot.from_cache(cached)
        round_obj = Round.objects.filter(status=Round.STATUS_ACTIVE).order_by("-round_id").first()
        return RoundSnapshot.from_model(round_obj) if round_obj else None

    def _latest_round_id(self) -> str | None:
        return Round.objects.order_by("-round_id").values_list("round_id", flat=True).first()

    def _end_active_rounds(self, previous: RoundSnapshot | None, now: datetime) -> list[str]:
        ids = set(
            Round.objects.filter(status=Round.STATUS_ACTIVE).values_list("round_id", flat=True)
        )
        if previous:
            ids.add(previous.round_id)
        if not ids:
            return []

        self._save_with_retry(
            lambda: Round.objects.filter(round_id__in=ids, status=Round.STATUS_ACTIVE).update(
                status=Round.STATUS_ENDED, end_time=now
            ),
            f"end of round(s) {', '.join(sorted(ids))}",
        )
        return sorted(ids)

    def _abandoned_round_ids(self, ended_ids: list[str], new_id: str) -> list[str]:
        # Also sweeps sessions left on rounds whose rows never persisted.
        stale = set(
            GameSession.objects.filter(status=GameSession.STATUS_ACTIVE)
            .exclude(round_id=new_id)
            .values_list("round_id", flat=True)
            .distinct()
        )
        return sorted(stale | set(ended_ids))

    def _save_with_retry(self, write, what: str) -> bool:
        for attempt in range(1, self.save_attempts + 1):
            try:
                write()
                return True
            except DatabaseError as exc:
                logger.warning("Saving %s failed (attempt %s/%s): %s", what, attempt, self.save_attempts, exc)
                if attempt < self.save_attempts and self.retry_delay:
                    time.sleep(self.retry_delay)

        failure = PersistenceFailure(
            f"Could not persist {what} after {self.save_attempts} attempts; in-memory state stays authoritative"
        )
        logger.error("%s: %s", failure.code, failure)
        return False
