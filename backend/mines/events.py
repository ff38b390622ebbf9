# mines/events.py
"""
Push-channel events. Each event is a frozen dataclass with a fixed tag and a
serializer describing its payload; the notifier only ever sends
``{"event": tag, "data": payload}`` built from those.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from rest_framework import serializers

logger = logging.getLogger(__name__)

PLAYERS_GROUP = "mines"
ADMINS_GROUP = "mines_admin"


# =====================================================
# PAYLOAD SCHEMAS
# =====================================================

class RoundUpdateSerializer(serializers.Serializer):
    currentRoundId = serializers.CharField(source="current_round_id")
    nextRoundId = serializers.CharField(source="next_round_id")
    remainingMs = serializers.IntegerField(source="remaining_ms")
    startedAt = serializers.DateTimeField(source="started_at")


class RoundMineLayoutSerializer(serializers.Serializer):
    roundId = serializers.CharField(source="round_id")
    positions = serializers.ListField(child=serializers.IntegerField())


class SessionStartedSerializer(serializers.Serializer):
    sessionId = serializers.UUIDField(source="session_id")
    roundId = serializers.CharField(source="round_id")
    baseMultiplier = serializers.DecimalField(source="base_multiplier", max_digits=18, decimal_places=2)
    currentMultiplier = serializers.DecimalField(source="current_multiplier", max_digits=18, decimal_places=8)


class MultiplierUpdateSerializer(serializers.Serializer):
    sessionId = serializers.UUIDField(source="session_id")
    currentMultiplier = serializers.DecimalField(source="current_multiplier", max_digits=18, decimal_places=8)
    potentialWinnings = serializers.DecimalField(source="potential_winnings", max_digits=14, decimal_places=2)
    revealedCells = serializers.ListField(source="revealed_cells", child=serializers.IntegerField())
    nextMultiplier = serializers.DecimalField(source="next_multiplier", max_digits=18, decimal_places=8)


class SessionLostSerializer(serializers.Serializer):
    sessionId = serializers.UUIDField(source="session_id")
    revealedCells = serializers.ListField(source="revealed_cells", child=serializers.IntegerField())
    minePositions = serializers.ListField(source="mine_positions", child=serializers.IntegerField())


class CashoutSuccessSerializer(serializers.Serializer):
    sessionId = serializers.UUIDField(source="session_id")
    winnings = serializers.DecimalField(max_digits=14, decimal_places=2)


class AutoCashoutSerializer(serializers.Serializer):
    sessionId = serializers.UUIDField(source="session_id")
    winnings = serializers.DecimalField(max_digits=14, decimal_places=2)
    reason = serializers.CharField()


# =====================================================
# EVENTS
# =====================================================

@dataclass(frozen=True)
class Event:
    tag: ClassVar[str] = ""
    serializer_class: ClassVar[type] = serializers.Serializer
    admin_only: ClassVar[bool] = False

    def payload(self) -> dict:
        return dict(self.serializer_class(self).data)

    def message(self) -> dict:
        return {"event": self.tag, "data": self.payload()}


@dataclass(frozen=True)
class RoundUpdate(Event):
    tag: ClassVar[str] = "roundUpdate"
    serializer_class: ClassVar[type] = RoundUpdateSerializer

    current_round_id: str
    next_round_id: str
    remaining_ms: int
    started_at: datetime


@dataclass(frozen=True)
class RoundMineLayout(Event):
    tag: ClassVar[str] = "roundMineLayout"
    serializer_class: ClassVar[type] = RoundMineLayoutSerializer
    admin_only: ClassVar[bool] = True

    round_id: str
    positions: list = field(default_factory=list)


@dataclass(frozen=True)
class SessionStarted(Event):
    tag: ClassVar[str] = "sessionStarted"
    serializer_class: ClassVar[type] = SessionStartedSerializer

    session_id: str
    round_id: str
    base_multiplier: Decimal
    current_multiplier: Decimal


@dataclass(frozen=True)
class MultiplierUpdate(Event):
    tag: ClassVar[str] = "multiplierUpdate"
    serializer_class: ClassVar[type] = MultiplierUpdateSerializer

    session_id: str
    current_multiplier: Decimal
    potential_winnings: Decimal
    revealed_cells: list
    next_multiplier: Decimal


@dataclass(frozen=True)
class SessionLost(Event):
    tag: ClassVar[str] = "sessionLost"
    serializer_class: ClassVar[type] = SessionLostSerializer

    session_id: str
    revealed_cells: list
    mine_positions: list


@dataclass(frozen=True)
class CashoutSuccess(Event):
    tag: ClassVar[str] = "cashoutSuccess"
    serializer_class: ClassVar[type] = CashoutSuccessSerializer

    session_id: str
    winnings: Decimal


@dataclass(frozen=True)
class AutoCashout(Event):
    tag: ClassVar[str] = "autoCashout"
    serializer_class: ClassVar[type] = AutoCashoutSerializer

    session_id: str
    winnings: Decimal
    reason: str = "Round ended - auto cashout"


# =====================================================
# NOTIFIER
# =====================================================

class Notifier:
    def publish(self, event: Event) -> None:
        raise NotImplementedError


class ChannelsNotifier(Notifier):
    """
    Fans events out through the channel layer. Admin-only events go to the
    staff group and nowhere else.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def publish(self, event: Event) -> None:
        group = ADMINS_GROUP if event.admin_only else PLAYERS_GROUP
        async_to_sync(self.channel_layer.group_send)(
            group,
            {"type": "mines.event", **event.message()},
        )
        logger.debug("Published %s to %s", event.tag, group)


def publish_safely(notifier: Notifier, event: Event) -> bool:
    """
    Fan-out is best effort: game state has already changed by the time an
    event is sent, so a broken channel layer is logged and never re-raised.
    """
    try:
        notifier.publish(event)
        return True
    except Exception:
        logger.exception("Publishing %s failed", event.tag)
        return False


class RecordingNotifier(Notifier):
    """Keeps published events in memory instead of sending them."""

    def __init__(self):
        self.events: list[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_cls) -> list:
        return [e for e in self.events if isinstance(e, event_cls)]
