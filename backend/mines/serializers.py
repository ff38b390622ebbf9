# mines/serializers.py
from __future__ import annotations
from django.conf import settings
from rest_framework import serializers

from .models import GameSession, Round


class StartGameIn(serializers.Serializer):
    bet_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    mine_count = serializers.IntegerField()


class StartGameOut(serializers.Serializer):
    session_id = serializers.UUIDField()
    round_id = serializers.CharField()
    base_multiplier = serializers.DecimalField(max_digits=10, decimal_places=2)
    current_multiplier = serializers.DecimalField(max_digits=18, decimal_places=8)


class RevealIn(serializers.Serializer):
    session_id = serializers.UUIDField()
    position = serializers.IntegerField()


class RevealOut(serializers.Serializer):
    is_mine = serializers.BooleanField()
    game_over = serializers.BooleanField()
    revealed_cells = serializers.ListField(child=serializers.IntegerField())
    current_multiplier = serializers.DecimalField(max_digits=18, decimal_places=8, required=False)
    potential_winnings = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    next_multiplier = serializers.DecimalField(max_digits=18, decimal_places=8, required=False)
    mine_positions = serializers.ListField(child=serializers.IntegerField(), required=False)
    winnings = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)


class CashoutIn(serializers.Serializer):
    session_id = serializers.UUIDField()


class CashoutOut(serializers.Serializer):
    winnings = serializers.DecimalField(max_digits=14, decimal_places=2)


class CurrentRoundOut(serializers.Serializer):
    round_id = serializers.CharField()
    next_round_id = serializers.CharField()
    started_at = serializers.DateTimeField()
    remaining_ms = serializers.IntegerField()
    mine_positions = serializers.ListField(child=serializers.IntegerField(), required=False)


class HackModeIn(serializers.Serializer):
    enabled = serializers.BooleanField()


class GameSessionSerializer(serializers.ModelSerializer):
    """History row. Layout is only disclosed once the game is over."""

    mine_positions = serializers.SerializerMethodField()

    class Meta:
        model = GameSession
        fields = [
            "id",
            "round_id",
            "bet_amount",
            "mine_count",
            "mine_positions",
            "revealed_cells",
            "current_multiplier",
            "status",
            "winnings",
            "end_reason",
            "created_at",
            "finished_at",
        ]

    def get_mine_positions(self, obj):
        return [] if obj.is_active else obj.mine_positions


class RoundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Round
        fields = ["round_id", "mine_count", "mine_positions", "start_time", "end_time", "status"]


def history_limit(raw) -> int | None:
    if raw in (None, ""):
        return None
    field = serializers.IntegerField(min_value=1, max_value=settings.MINES_HISTORY_MAX)
    return field.run_validation(raw)
