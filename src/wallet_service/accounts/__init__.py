"""Ledger account domain package."""

from .enums import AccountRole, KycStatus
from .models import Account, Package

__all__ = ["Account", "AccountRole", "KycStatus", "Package"]
