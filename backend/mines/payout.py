# mines/payout.py
from __future__ import annotations

from decimal import Decimal, ROUND_DOWN, localcontext

from .exceptions import InvalidParameter

BOARD_SIZE = 25
MIN_MINES = 1
MAX_MINES = 24

D1 = Decimal("1.0")
MIN_WIN_MULTIPLIER = Decimal("1.01")
FALLBACK_BASE_MULTIPLIER = Decimal("1.08")

BASE_MULTIPLIERS = {
    1: Decimal("1.01"),
    2: Decimal("1.05"),
    3: Decimal("1.08"),
    4: Decimal("1.10"),
    5: Decimal("1.15"),
    6: Decimal("1.21"),
    7: Decimal("1.27"),
    8: Decimal("1.34"),
    9: Decimal("1.42"),
    10: Decimal("1.51"),
    11: Decimal("1.61"),
    12: Decimal("1.73"),
    13: Decimal("1.86"),
    14: Decimal("2.02"),
    15: Decimal("2.20"),
    16: Decimal("2.40"),
    17: Decimal("2.63"),
    18: Decimal("2.89"),
    19: Decimal("3.19"),
    20: Decimal("3.54"),
    21: Decimal("3.95"),
    22: Decimal("4.44"),
    23: Decimal("5.02"),
    24: Decimal("5.74"),
}


def q8(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.00000001"), rounding=ROUND_DOWN)


def money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"))


def _check_mine_count(mine_count: int) -> None:
    if not isinstance(mine_count, int) or isinstance(mine_count, bool):
        raise InvalidParameter("Invalid mines count")
    if mine_count < MIN_MINES or mine_count > MAX_MINES:
        raise InvalidParameter("Invalid mines count")


def safe_cells(mine_count: int) -> int:
    return BOARD_SIZE - mine_count


def base_multiplier(mine_count: int, default: Decimal | None = None) -> Decimal:
    """
    Multiplier shown for the first successful reveal, keyed by mine count.
    Pass ``default`` on paths that must not fail on malformed input.
    """
    try:
        _check_mine_count(mine_count)
    except InvalidParameter:
        if default is not None:
            return default
        raise
    return BASE_MULTIPLIERS[mine_count]


def multiplier_after(mine_count: int, safe_revealed: int) -> Decimal:
    """
    Fair-odds multiplier after ``safe_revealed`` safe picks without replacement:

        prod_{i=1..k} (25 - i + 1) / (25 - m - i + 1)

    i.e. the inverse probability of having dodged every mine so far.
    Floored at 1.01 once anything has been revealed.
    """
    _check_mine_count(mine_count)
    if safe_revealed < 0 or safe_revealed > safe_cells(mine_count):
        raise InvalidParameter("Invalid revealed count")

    if safe_revealed == 0:
        return D1

    with localcontext() as ctx:
        ctx.prec = 36
        multiplier = D1
        for i in range(1, safe_revealed + 1):
            remaining_total = BOARD_SIZE - i + 1
            remaining_safe = BOARD_SIZE - mine_count - i + 1
            multiplier *= Decimal(remaining_total) / Decimal(remaining_safe)

    return q8(max(MIN_WIN_MULTIPLIER, multiplier))


def next_multiplier(mine_count: int, safe_revealed: int) -> Decimal:
    """Multiplier one safe reveal ahead; stays put once the board is cleared."""
    if safe_revealed >= safe_cells(mine_count):
        return multiplier_after(mine_count, safe_revealed)
    return multiplier_after(mine_count, safe_revealed + 1)
