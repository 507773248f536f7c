"""Balance ledger and transaction log."""

from .enums import TransactionStatus, TransactionType
from .models import Transaction

__all__ = ["Transaction", "TransactionStatus", "TransactionType"]
