"""Withdrawal lifecycle domain package."""

from .enums import PaymentMethod, WithdrawalAction, WithdrawalStatus
from .models import Withdrawal

__all__ = ["PaymentMethod", "Withdrawal", "WithdrawalAction", "WithdrawalStatus"]
