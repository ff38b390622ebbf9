# mines/models.py
from __future__ import annotations

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models

User = settings.AUTH_USER_MODEL


class Round(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_ENDED = "ended"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_ENDED, "Ended"),
    ]

    round_id = models.CharField(max_length=20, unique=True)
    mine_count = models.PositiveSmallIntegerField(default=3)
    mine_positions = models.JSONField(default=list)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["-round_id"]

    def __str__(self):
        return f"Round {self.round_id} ({self.status})"


class GameSession(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_WON = "won"
    STATUS_LOST = "lost"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_WON, "Won"),
        (STATUS_LOST, "Lost"),
    ]

    REASON_CASHOUT = "cashout"
    REASON_AUTO_CASHOUT = "auto_cashout"
    REASON_MINE = "mine"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name="mines_sessions")
    round_id = models.CharField(max_length=20, db_index=True)

    bet_amount = models.DecimalField(max_digits=14, decimal_places=2)
    mine_count = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(24)],
    )
    mine_positions = models.JSONField(default=list)
    revealed_cells = models.JSONField(default=list)

    current_multiplier = models.DecimalField(max_digits=18, decimal_places=8, default=Decimal("1.0"))
    status = models.CharField(max_length=8, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    winnings = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    end_reason = models.CharField(max_length=16, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["owner", "round_id"], name="one_bet_per_round"),
        ]
        indexes = [
            models.Index(fields=["round_id", "status"], name="mines_games_round_i_3f1a2c_idx"),
            models.Index(fields=["owner", "created_at"], name="mines_games_owner_i_8d2e4b_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def __str__(self):
        return f"Session {self.id} on {self.round_id} ({self.status})"
