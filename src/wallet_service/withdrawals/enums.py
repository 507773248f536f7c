from __future__ import annotations

from enum import StrEnum


class PaymentMethod(StrEnum):
    """Payout rails a withdrawal can be sent through."""

    BKASH = "BKASH"
    NAGAD = "NAGAD"
    ROCKET = "ROCKET"
    BINANCE = "BINANCE"
    PAYPAL = "PAYPAL"


class WithdrawalStatus(StrEnum):
    """Withdrawal request status."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = (WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING)
# Any of these starts the cooldown window for the next request.
COOLDOWN_STATUSES = (*OPEN_STATUSES, WithdrawalStatus.COMPLETED)


class WithdrawalAction(StrEnum):
    """Admin decisions accepted on an open withdrawal."""

    APPROVE = "approve"
    REJECT = "reject"
    PROCESS = "process"
