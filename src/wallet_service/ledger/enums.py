from __future__ import annotations

from enum import StrEnum


class TransactionType(StrEnum):
    """Categories of balance mutation recorded in the transaction log."""

    TASK_REWARD = "TASK_REWARD"
    REFERRAL_BONUS = "REFERRAL_BONUS"
    BONUS = "BONUS"
    WITHDRAWAL = "WITHDRAWAL"
    REFUND = "REFUND"
    ADJUSTMENT = "ADJUSTMENT"

    @property
    def is_earning(self) -> bool:
        return self in EARNING_TYPES


EARNING_TYPES = (
    TransactionType.TASK_REWARD,
    TransactionType.REFERRAL_BONUS,
    TransactionType.BONUS,
)


class TransactionStatus(StrEnum):
    """Lifecycle status of a transaction row."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
