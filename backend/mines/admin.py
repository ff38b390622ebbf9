# mines/admin.py
from django.contrib import admin
from .models import Round, GameSession


@admin.register(Round)
class RoundAdmin(admin.ModelAdmin):
    list_display = ("round_id", "status", "mine_count", "mine_positions", "start_time", "end_time")
    list_filter = ("status",)
    search_fields = ("round_id",)
    readonly_fields = ("round_id", "mine_count", "mine_positions", "start_time", "end_time", "status")


@admin.register(GameSession)
class GameSessionAdmin(admin.ModelAdmin):
    list_display = ("id", "owner", "round_id", "bet_amount", "mine_count", "status", "current_multiplier", "winnings", "end_reason", "created_at")
    list_filter = ("status", "end_reason", "mine_count")
    search_fields = ("id", "round_id", "owner__email", "owner__username")
    readonly_fields = ("mine_positions", "revealed_cells", "created_at", "finished_at")
