"""Base error taxonomy; domain packages extend it in their own ``exceptions``."""

from __future__ import annotations

from decimal import Decimal


class WalletError(Exception):
    """Base class for wallet domain errors."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    default_message = "Wallet operation failed"

    @property
    def message(self) -> str:
        return str(self.args[0])


class ValidationError(WalletError):
    """Raised when a request fails a business validation check."""

    default_message = "Invalid request"


class InsufficientBalanceError(WalletError):
    """Raised when a debit would drive a balance below zero."""

    default_message = "Insufficient balance"

    def __init__(
        self,
        message: str | None = None,
        *,
        required: int | Decimal | None = None,
        available: int | Decimal | None = None,
    ) -> None:
        super().__init__(message)
        self.required = required
        self.available = available


class InvalidTransitionError(WalletError):
    """Raised when a state change is attempted from an ineligible status."""

    default_message = "Withdrawal has already been processed"


class NotFoundError(WalletError):
    """Raised when a referenced entity does not exist."""

    default_message = "Not found"


class AccountNotFoundError(NotFoundError):
    """Raised when a ledger account is missing."""

    default_message = "Account not found"


class PersistenceFailureError(WalletError):
    """Raised when the storage layer fails while committing a unit of work."""

    default_message = "Internal server error"
