# mines/layout.py
from __future__ import annotations

import random

from .exceptions import InvalidParameter
from .payout import BOARD_SIZE

# OS entropy; players cannot replay the sequence from observed boards.
_system_rng = random.SystemRandom()


def generate(mine_count: int, board_size: int = BOARD_SIZE, rng: random.Random | None = None) -> list[int]:
    """
    Pick ``mine_count`` distinct cells on a ``board_size`` board.
    Returns the positions sorted ascending.
    """
    if mine_count < 1 or mine_count >= board_size:
        raise InvalidParameter(f"Cannot place {mine_count} mines on {board_size} cells")

    rng = rng or _system_rng
    positions: set[int] = set()
    while len(positions) < mine_count:
        positions.add(rng.randrange(board_size))
    return sorted(positions)
