"""Withdrawal request errors."""

from __future__ import annotations

from decimal import Decimal

from wallet_service.core.exceptions import NotFoundError, ValidationError, WalletError


class InvalidAmountError(ValidationError):
    """Raised when an amount is not positive or has sub-cent precision."""

    default_message = "Invalid withdrawal amount"


class UnsupportedMethodError(ValidationError):
    """Raised when a payment method has no configured fee schedule."""

    default_message = "Invalid payment method"


class InvalidAccountDetailsError(ValidationError):
    """Raised when payout account details are missing or malformed."""

    default_message = "Account details are required"


class BelowMinimumError(ValidationError):
    """Raised when an amount falls under a method or package minimum."""

    def __init__(self, message: str, *, minimum: Decimal) -> None:
        super().__init__(message)
        self.minimum = minimum


class KycRequiredError(WalletError):
    """Raised when an amount above the KYC threshold is requested without approval."""

    def __init__(self, threshold: Decimal) -> None:
        super().__init__(
            f"KYC verification required for withdrawals over ${threshold:f}"
        )
        self.threshold = threshold


class CooldownActiveError(WalletError):
    """Raised when a withdrawal is requested before the cooldown has elapsed."""

    def __init__(self, remaining_hours: int) -> None:
        super().__init__(
            f"Please wait {remaining_hours} more hours before requesting "
            "another withdrawal"
        )
        self.remaining_hours = remaining_hours


class WithdrawalNotFoundError(NotFoundError):
    """Raised when a withdrawal is missing or not visible to the caller."""

    default_message = "Withdrawal not found"
