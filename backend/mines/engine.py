# mines/engine.py
from __future__ import annotations

import functools
import logging

from django.contrib.auth import get_user_model

from .events import (
    CashoutSuccess,
    ChannelsNotifier,
    MultiplierUpdate,
    Notifier,
    SessionLost,
    SessionStarted,
    publish_safely,
)
from .exceptions import NoActiveRound, NotFound
from .payout import base_multiplier
from .policy import OutcomePolicy, get_policy
from .scheduler import RoundScheduler
from .store import GameSessionStore

logger = logging.getLogger(__name__)


class GameSessionEngine:
    """
    Entry point for the request layer: start a game, reveal a cell, cash out.
    Turns store results into response dicts and push events.
    """

    def __init__(
        self,
        store: GameSessionStore,
        scheduler: RoundScheduler,
        notifier: Notifier,
        policy: OutcomePolicy | None = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.notifier = notifier
        self.policy = policy or get_policy()

    # =====================================================
    # START
    # =====================================================

    def start_game(self, owner, bet_amount, mine_count) -> dict:
        # Rotation cannot slip in between reading the round and placing the bet.
        with self.scheduler.lock:
            current = self.scheduler.current
            if current is None:
                raise NoActiveRound()
            session = self.store.start_session(owner, bet_amount, mine_count, current.round_id)

        result = {
            "session_id": str(session.id),
            "round_id": session.round_id,
            "base_multiplier": base_multiplier(session.mine_count),
            "current_multiplier": session.current_multiplier,
        }
        publish_safely(self.notifier, SessionStarted(**result))
        return result

    # =====================================================
    # REVEAL
    # =====================================================

    def reveal(self, session_id, owner, position) -> dict:
        result = self.store.reveal_cell(session_id, owner, position, self.policy)
        session = result.session

        if result.is_mine:
            publish_safely(
                self.notifier,
                SessionLost(
                    session_id=str(session.id),
                    revealed_cells=result.revealed_cells,
                    mine_positions=list(session.mine_positions),
                )
            )
            return {
                "is_mine": True,
                "game_over": True,
                "revealed_cells": result.revealed_cells,
                "mine_positions": list(session.mine_positions),
                "winnings": session.winnings,
            }

        publish_safely(
            self.notifier,
            MultiplierUpdate(
                session_id=str(session.id),
                current_multiplier=session.current_multiplier,
                potential_winnings=result.potential_winnings,
                revealed_cells=result.revealed_cells,
                next_multiplier=result.next_multiplier,
            )
        )
        return {
            "is_mine": False,
            "game_over": False,
            "revealed_cells": result.revealed_cells,
            "current_multiplier": session.current_multiplier,
            "potential_winnings": result.potential_winnings,
            "next_multiplier": result.next_multiplier,
        }

    # =====================================================
    # CASHOUT
    # =====================================================

    def cash_out(self, session_id, owner) -> dict:
        result = self.store.cash_out(session_id, owner)
        publish_safely(
            self.notifier,
            CashoutSuccess(session_id=str(result.session.id), winnings=result.winnings)
        )
        return {"winnings": result.winnings}

    # =====================================================
    # QUERIES / ADMIN
    # =====================================================

    def get_current_round(self, is_admin: bool = False) -> dict:
        current = self.scheduler.current
        if current is None:
            raise NoActiveRound()

        data = {
            "round_id": current.round_id,
            "next_round_id": self.scheduler.next_round_id(current),
            "started_at": current.started_at,
            "remaining_ms": self.scheduler.remaining_ms(current),
        }
        if is_admin:
            data["mine_positions"] = list(current.mine_positions)
        return data

    def history(self, owner, limit: int | None = None) -> list:
        return self.store.history(owner, limit)

    def set_hack_mode(self, user_id, enabled: bool) -> bool:
        updated = get_user_model().objects.filter(pk=user_id).update(hack_mode_enabled=bool(enabled))
        if not updated:
            raise NotFound("User not found")
        logger.info("Hack mode %s for user %s", "enabled" if enabled else "disabled", user_id)
        return bool(enabled)


@functools.lru_cache(maxsize=None)
def get_engine() -> GameSessionEngine:
    """Process-wide engine used by views and consumers."""
    notifier = ChannelsNotifier()
    store = GameSessionStore()
    scheduler = RoundScheduler(store=store, notifier=notifier)
    return GameSessionEngine(store=store, scheduler=scheduler, notifier=notifier)
