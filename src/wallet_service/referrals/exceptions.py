"""Referral module exceptions."""

from __future__ import annotations

from wallet_service.core.exceptions import NotFoundError, ValidationError, WalletError


class InvalidReferralCodeError(ValidationError):
    """Raised when a referral code is unknown or refers to the new account."""

    default_message = "Invalid referral code"


class InvalidReferralLevelError(ValidationError):
    """Raised when a referral level configuration is out of range."""

    default_message = "Invalid referral level configuration"


class ReferralLevelNotFoundError(NotFoundError):
    """Raised when a referral level slot has not been configured."""

    default_message = "Referral level not found"


class ReferralCycleError(WalletError):
    """Raised when the referral ancestry walk revisits an account."""

    default_message = "Referral cycle detected"
