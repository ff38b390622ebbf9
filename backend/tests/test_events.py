from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from mines.events import (
    ADMINS_GROUP,
    PLAYERS_GROUP,
    AutoCashout,
    ChannelsNotifier,
    MultiplierUpdate,
    RoundMineLayout,
    RoundUpdate,
    SessionLost,
    SessionStarted,
)

SESSION = "7b1c3d5e-0000-4000-8000-000000000001"


class FakeLayer:
    def __init__(self):
        self.sent = []

    async def group_send(self, group, message):
        self.sent.append((group, message))


def test_round_update_payload():
    event = RoundUpdate(
        current_round_id="20260101120000",
        next_round_id="20260101120100",
        remaining_ms=60000,
        started_at=datetime(2026, 1, 1, 12, 0, tzinfo=dt_timezone.utc),
    )
    message = event.message()
    assert message["event"] == "roundUpdate"
    assert message["data"]["currentRoundId"] == "20260101120000"
    assert message["data"]["nextRoundId"] == "20260101120100"
    assert message["data"]["remainingMs"] == 60000
    assert message["data"]["startedAt"].startswith("2026-01-01T12:00:00")


def test_session_events_use_camel_case():
    started = SessionStarted(
        session_id=SESSION,
        round_id="20260101120000",
        base_multiplier=Decimal("1.08"),
        current_multiplier=Decimal("1.0"),
    ).payload()
    assert started == {
        "sessionId": SESSION,
        "roundId": "20260101120000",
        "baseMultiplier": "1.08",
        "currentMultiplier": "1.00000000",
    }

    update = MultiplierUpdate(
        session_id=SESSION,
        current_multiplier=Decimal("1.13636363"),
        potential_winnings=Decimal("113.64"),
        revealed_cells=[4],
        next_multiplier=Decimal("1.29870129"),
    ).payload()
    assert update["revealedCells"] == [4]
    assert update["potentialWinnings"] == "113.64"
    assert update["nextMultiplier"] == "1.29870129"

    lost = SessionLost(session_id=SESSION, revealed_cells=[1, 9], mine_positions=[2, 9, 20]).payload()
    assert lost == {"sessionId": SESSION, "revealedCells": [1, 9], "minePositions": [2, 9, 20]}

    auto = AutoCashout(session_id=SESSION, winnings=Decimal("50.00")).payload()
    assert auto["reason"] == "Round ended - auto cashout"


def test_events_are_immutable():
    event = RoundMineLayout(round_id="20260101120000", positions=[1, 2, 3])
    with pytest.raises(AttributeError):
        event.round_id = "x"


def test_channels_notifier_routes_by_audience():
    layer = FakeLayer()
    notifier = ChannelsNotifier(channel_layer=layer)

    notifier.publish(AutoCashout(session_id=SESSION, winnings=Decimal("10.00")))
    notifier.publish(RoundMineLayout(round_id="20260101120000", positions=[5, 6, 7]))

    (group1, msg1), (group2, msg2) = layer.sent
    assert group1 == PLAYERS_GROUP
    assert msg1["type"] == "mines.event"
    assert msg1["event"] == "autoCashout"
    assert group2 == ADMINS_GROUP
    assert msg2["data"] == {"roundId": "20260101120000", "positions": [5, 6, 7]}
