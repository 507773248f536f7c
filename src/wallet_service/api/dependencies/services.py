from __future__ import annotations

from fastapi import Depends

from wallet_service.core.config import Settings, get_settings
from wallet_service.earnings.service import EarningsService
from wallet_service.ledger.service import LedgerService
from wallet_service.notifications.emitter import (
    LoggingNotificationEmitter,
    NotificationEmitter,
)
from wallet_service.referrals.service import ReferralService
from wallet_service.withdrawals.service import WithdrawalService

_NOTIFIER: NotificationEmitter | None = None


def get_notification_emitter() -> NotificationEmitter:
    global _NOTIFIER
    if _NOTIFIER is None:
        _NOTIFIER = LoggingNotificationEmitter()
    return _NOTIFIER


def get_ledger_service(settings: Settings = Depends(get_settings)) -> LedgerService:
    return LedgerService(settings.withdrawals)


def get_withdrawal_service(
    settings: Settings = Depends(get_settings),
    ledger: LedgerService = Depends(get_ledger_service),
    notifier: NotificationEmitter = Depends(get_notification_emitter),
) -> WithdrawalService:
    return WithdrawalService(settings.withdrawals, ledger, notifier)


def get_referral_service(
    settings: Settings = Depends(get_settings),
    ledger: LedgerService = Depends(get_ledger_service),
    notifier: NotificationEmitter = Depends(get_notification_emitter),
) -> ReferralService:
    return ReferralService(settings.referrals, ledger, notifier)


def get_earnings_service(
    ledger: LedgerService = Depends(get_ledger_service),
    referrals: ReferralService = Depends(get_referral_service),
) -> EarningsService:
    return EarningsService(ledger, referrals)


def reset_service_dependencies() -> None:
    """Reset cached singletons to allow reconfiguration during tests."""

    global _NOTIFIER
    _NOTIFIER = None
