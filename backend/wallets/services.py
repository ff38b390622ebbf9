from decimal import Decimal
from django.db import transaction
from django.db.models import F
from .models import Wallet, WalletTransaction


class WalletError(Exception):
    pass


class InsufficientFunds(WalletError):
    pass


# ======================================================
# INTERNAL
# ======================================================
def _get_wallet_for_update(user):
    return Wallet.objects.select_for_update().get(user=user)


# ======================================================
# STAKE (DEBIT)
# ======================================================
@transaction.atomic
def debit_stake(user, amount: Decimal, reference: str, meta=None) -> Decimal:
    """
    Take a stake out of the user's balance and write the ledger row.
    Returns the new balance.
    """
    if amount <= 0:
        raise WalletError("Invalid bet amount")

    wallet = _get_wallet_for_update(user)

    if wallet.balance < amount:
        raise InsufficientFunds("Insufficient balance")

    wallet.balance = F("balance") - amount
    wallet.save(update_fields=["balance"])
    wallet.refresh_from_db(fields=["balance"])

    WalletTransaction.objects.create(
        user=user,
        amount=amount,
        tx_type=WalletTransaction.DEBIT,
        reference=reference,
        meta=meta or {},
    )

    return wallet.balance


# ======================================================
# PAYOUT (CREDIT)
# ======================================================
@transaction.atomic
def credit_payout(user, payout: Decimal, reference: str, meta=None) -> Decimal:
    """
    Credit winnings to the user's balance and write the ledger row.
    Returns the new balance.
    """
    if payout < 0:
        raise WalletError("Invalid payout amount")

    wallet = _get_wallet_for_update(user)

    wallet.balance = F("balance") + payout
    wallet.save(update_fields=["balance"])
    wallet.refresh_from_db(fields=["balance"])

    WalletTransaction.objects.create(
        user=user,
        amount=payout,
        tx_type=WalletTransaction.CREDIT,
        reference=reference,
        meta=meta or {},
    )

    return wallet.balance
