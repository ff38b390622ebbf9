# mines/policy.py
"""
Outcome policies decide whether a reveal is resolved as a mine regardless of
the session's real layout. The active policy is configured by dotted path in
``settings.MINES_OUTCOME_POLICY`` and is never consulted for house accounts.
"""
from __future__ import annotations

from django.conf import settings
from django.utils.module_loading import import_string

STREAK_THRESHOLD = 2
FORCED_REVEAL_INDEX = 2  # zero-based: the third pick


def should_force_loss(consecutive_wins: int, override_enabled: bool, revealed_before: int) -> bool:
    return (
        consecutive_wins >= STREAK_THRESHOLD
        and not override_enabled
        and revealed_before == FORCED_REVEAL_INDEX
    )


class OutcomePolicy:
    name = "base"

    def should_force_loss(self, consecutive_wins: int, override_enabled: bool, revealed_before: int) -> bool:
        raise NotImplementedError


class FairPolicy(OutcomePolicy):
    """Reveals always resolve against the real layout."""

    name = "fair"

    def should_force_loss(self, consecutive_wins, override_enabled, revealed_before):
        return False


class ControlledLossPolicy(OutcomePolicy):
    """
    Forces a mine on the third pick for players on a winning streak of two or
    more, unless an operator switched on hack mode for them.
    """

    name = "controlled_loss"

    def should_force_loss(self, consecutive_wins, override_enabled, revealed_before):
        return should_force_loss(consecutive_wins, override_enabled, revealed_before)


def get_policy(path: str | None = None) -> OutcomePolicy:
    policy_cls = import_string(path or settings.MINES_OUTCOME_POLICY)
    return policy_cls()
