# mines/exceptions.py
from __future__ import annotations


class MinesError(Exception):
    code = "mines_error"
    status_code = 400
    default_message = "Game error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidParameter(MinesError):
    code = "invalid_parameter"
    default_message = "Invalid parameters"


class InvalidBet(InvalidParameter):
    code = "invalid_bet"
    default_message = "Invalid bet"


class InvalidPosition(InvalidParameter):
    code = "invalid_position"
    default_message = "Invalid position"


class DuplicateBet(MinesError):
    code = "duplicate_bet"
    status_code = 409
    default_message = "You already have an active bet in this round"


class NotFound(MinesError):
    code = "not_found"
    status_code = 404
    default_message = "Game not found"


class NotActive(NotFound):
    code = "not_active"
    default_message = "Game is not active"


class AlreadyRevealed(MinesError):
    code = "already_revealed"
    default_message = "Position already revealed"


class NothingRevealed(MinesError):
    code = "nothing_revealed"
    default_message = "No positions revealed yet"


class InsufficientBalance(MinesError):
    code = "insufficient_balance"
    default_message = "Insufficient balance"


class NoActiveRound(MinesError):
    code = "no_active_round"
    status_code = 503
    default_message = "No active round, try again shortly"


class PersistenceFailure(MinesError):
    code = "persistence_failure"
    status_code = 503
    default_message = "Storage write failed"
