# accounts/models.py
from decimal import Decimal
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    email = models.EmailField(unique=True, db_index=True)

    # Lifetime amount wagered on cashed-out games
    total_bets = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))

    # Fraud state consumed by the mines outcome policy
    consecutive_wins = models.PositiveIntegerField(default=0)
    hack_mode_enabled = models.BooleanField(default=False)

    @property
    def is_house(self) -> bool:
        """Staff accounts play on the house: no stake debit, no payout credit."""
        return self.is_staff

    def __str__(self):
        return self.email
