# mines/store.py
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from wallets.services import InsufficientFunds, credit_payout, debit_stake

from . import layout
from .exceptions import (
    AlreadyRevealed,
    DuplicateBet,
    InsufficientBalance,
    InvalidBet,
    InvalidPosition,
    NotActive,
    NotFound,
    NothingRevealed,
)
from .locks import KeyedLock
from .models import GameSession
from .payout import BOARD_SIZE, MAX_MINES, MIN_MINES, money, multiplier_after, next_multiplier
from .policy import OutcomePolicy

logger = logging.getLogger(__name__)

AUTO_CASHOUT_DETAILS = "auto-cashout: round ended"


@dataclass
class RevealResult:
    session: GameSession
    position: int
    is_mine: bool
    forced: bool = False
    potential_winnings: Decimal | None = None
    next_multiplier: Decimal | None = None

    @property
    def revealed_cells(self) -> list[int]:
        return list(self.session.revealed_cells)


@dataclass
class CashoutResult:
    session: GameSession
    winnings: Decimal
    balance: Decimal | None = None
    reason: str = GameSession.REASON_CASHOUT


def _parse_bet(bet_amount) -> Decimal:
    try:
        amount = Decimal(str(bet_amount))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidBet("Invalid bet amount")
    if not amount.is_finite():
        raise InvalidBet("Invalid bet amount")
    if amount < settings.MINES_MIN_BET or amount > settings.MINES_MAX_BET:
        raise InvalidBet(
            f"Bet must be between {settings.MINES_MIN_BET} and {settings.MINES_MAX_BET}"
        )
    return money(amount)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class GameSessionStore:
    """
    Owns GameSession rows. Each transition runs in one transaction with the
    session (and wallet/user) rows locked, under an in-process lock for the
    same key, so balance and status always change together.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng
        self._session_locks = KeyedLock()
        self._bet_locks = KeyedLock()

    # ===============================
    # START
    # ===============================

    def start_session(self, owner, bet_amount, mine_count, round_id: str) -> GameSession:
        amount = _parse_bet(bet_amount)
        if not _is_int(mine_count) or mine_count < MIN_MINES or mine_count > MAX_MINES:
            raise InvalidBet("Invalid mines count")

        with self._bet_locks.hold((owner.pk, round_id)):
            with transaction.atomic():
                # one bet per round, whatever became of it
                exists = GameSession.objects.filter(owner=owner, round_id=round_id).exists()
                if exists:
                    raise DuplicateBet()

                try:
                    with transaction.atomic():
                        session = GameSession.objects.create(
                            owner=owner,
                            round_id=round_id,
                            bet_amount=amount,
                            mine_count=mine_count,
                            mine_positions=layout.generate(mine_count, rng=self.rng),
                            revealed_cells=[],
                            current_multiplier=Decimal("1.0"),
                        )
                except IntegrityError:
                    # another process won the race for this (owner, round)
                    raise DuplicateBet()

                if not owner.is_house:
                    try:
                        debit_stake(
                            owner,
                            amount,
                            reference=f"mines:{session.id}:bet",
                            meta={"reason": "mines_bet", "round_id": round_id, "session_id": str(session.id)},
                        )
                    except InsufficientFunds:
                        raise InsufficientBalance()

        logger.info("Session %s started by user %s on round %s (bet=%s, mines=%s)",
                    session.id, owner.pk, round_id, amount, mine_count)
        return session

    # ===============================
    # REVEAL
    # ===============================

    def reveal_cell(self, session_id, owner, position, policy: OutcomePolicy) -> RevealResult:
        if not _is_int(position) or position < 0 or position >= BOARD_SIZE:
            raise InvalidPosition()

        with self._session_locks.hold(str(session_id)):
            with transaction.atomic():
                session = self._get_for_update(session_id, owner)
                revealed = list(session.revealed_cells or [])

                if position in revealed:
                    raise AlreadyRevealed()

                forced = False
                streak = 0
                player = None
                if not owner.is_house:
                    player = get_user_model().objects.select_for_update().get(pk=owner.pk)
                    streak = player.consecutive_wins
                    forced = policy.should_force_loss(streak, player.hack_mode_enabled, len(revealed))

                revealed.append(position)
                session.revealed_cells = revealed

                if forced or position in session.mine_positions:
                    session.status = GameSession.STATUS_LOST
                    session.winnings = Decimal("0.00")
                    session.end_reason = GameSession.REASON_MINE
                    session.finished_at = timezone.now()
                    session.save(update_fields=["revealed_cells", "status", "winnings", "end_reason", "finished_at"])

                    if player is not None:
                        player.consecutive_wins = 0
                        player.save(update_fields=["consecutive_wins"])

                    if forced:
                        logger.info("Forced loss for user %s on session %s (streak=%s)",
                                    owner.pk, session.id, streak)
                    return RevealResult(session=session, position=position, is_mine=True, forced=forced)

                safe_count = len(revealed)
                session.current_multiplier = multiplier_after(session.mine_count, safe_count)
                session.save(update_fields=["revealed_cells", "current_multiplier"])

        return RevealResult(
            session=session,
            position=position,
            is_mine=False,
            potential_winnings=money(session.bet_amount * session.current_multiplier),
            next_multiplier=next_multiplier(session.mine_count, safe_count),
        )

    # ===============================
    # CASHOUT
    # ===============================

    def cash_out(self, session_id, owner) -> CashoutResult:
        with self._session_locks.hold(str(session_id)):
            with transaction.atomic():
                session = self._get_for_update(session_id, owner)

                if not session.revealed_cells:
                    raise NothingRevealed()

                winnings = self._settle_won(session, GameSession.REASON_CASHOUT)

                balance = None
                if not owner.is_house:
                    balance = credit_payout(
                        owner,
                        winnings,
                        reference=f"mines:{session.id}:cashout",
                        meta={
                            "reason": "mines_cashout",
                            "details": f"Game winnings from round {session.round_id}",
                            "round_id": session.round_id,
                            "session_id": str(session.id),
                        },
                    )
                    get_user_model().objects.filter(pk=owner.pk).update(
                        consecutive_wins=F("consecutive_wins") + 1,
                        total_bets=F("total_bets") + session.bet_amount,
                    )

        return CashoutResult(session=session, winnings=winnings, balance=balance)

    def auto_cash_out(self, session_id) -> CashoutResult | None:
        """
        Resolve an abandoned session as won at its current multiplier.
        Returns None when the session is already terminal.
        """
        with self._session_locks.hold(str(session_id)):
            with transaction.atomic():
                session = (
                    GameSession.objects.select_for_update()
                    .select_related("owner")
                    .filter(id=session_id)
                    .first()
                )
                if session is None or not session.is_active:
                    return None

                winnings = self._settle_won(session, GameSession.REASON_AUTO_CASHOUT)

                balance = None
                if not session.owner.is_house:
                    balance = credit_payout(
                        session.owner,
                        winnings,
                        reference=f"mines:{session.id}:auto-cashout",
                        meta={
                            "reason": "mines_auto_cashout",
                            "details": AUTO_CASHOUT_DETAILS,
                            "round_id": session.round_id,
                            "session_id": str(session.id),
                        },
                    )

        return CashoutResult(
            session=session,
            winnings=winnings,
            balance=balance,
            reason=GameSession.REASON_AUTO_CASHOUT,
        )

    # ===============================
    # QUERIES
    # ===============================

    def active_session_ids(self, round_id: str) -> list:
        return list(
            GameSession.objects.filter(round_id=round_id, status=GameSession.STATUS_ACTIVE)
            .order_by("created_at")
            .values_list("id", flat=True)
        )

    def history(self, owner, limit: int | None = None):
        qs = GameSession.objects.filter(owner=owner).order_by("-created_at")
        if limit:
            qs = qs[:limit]
        return list(qs)

    # ===============================
    # HELPERS
    # ===============================

    def _get_for_update(self, session_id, owner) -> GameSession:
        try:
            session = (
                GameSession.objects.select_for_update()
                .filter(id=session_id, owner=owner)
                .first()
            )
        except (ValidationError, ValueError):
            session = None

        if session is None:
            raise NotFound()
        if not session.is_active:
            raise NotActive()
        return session

    def _settle_won(self, session: GameSession, reason: str) -> Decimal:
        winnings = money(session.bet_amount * session.current_multiplier)
        session.status = GameSession.STATUS_WON
        session.winnings = winnings
        session.end_reason = reason
        session.finished_at = timezone.now()
        session.save(update_fields=["status", "winnings", "end_reason", "finished_at"])
        return winnings
