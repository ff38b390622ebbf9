from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from wallets.models import Wallet


@pytest.mark.django_db
def test_new_user_gets_starting_wallet():
    user = get_user_model().objects.create_user(username="fresh", email="fresh@minex.test", password="pw-123456")

    wallet = Wallet.objects.get(user=user)
    assert wallet.balance == Decimal("200.00")
    assert user.consecutive_wins == 0
    assert user.hack_mode_enabled is False
    assert user.is_house is False


@pytest.mark.django_db
def test_staff_accounts_play_for_the_house(house):
    assert house.is_house is True
    house.save()
    assert Wallet.objects.filter(user=house).count() == 1
