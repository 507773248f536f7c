from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field

from wallet_service.accounts.enums import AccountRole, KycStatus
from wallet_service.api.schemas.referrals import ReferralEarningResponse
from wallet_service.ledger.enums import TransactionStatus, TransactionType


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: TransactionType
    status: TransactionStatus
    points: int = Field(..., description="Signed change to the points balance")
    amount: Decimal = Field(..., description="Signed change to the cash balance")
    description: str
    reference: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("meta_data", "metadata"),
    )
    created_at: dt.datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_credit(self) -> bool:
        return self.points > 0 or self.amount > 0


class TransactionSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_earnings: int
    total_referrals: int
    total_bonuses: int
    total_withdrawals: int


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    summary: TransactionSummaryResponse


class PackageTermsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier: str | None
    name: str | None
    min_withdrawal: Decimal
    fee_discount: Decimal


class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: uuid.UUID
    points: int
    available_points: int = Field(
        ..., description="Points not held by open withdrawals"
    )
    cash_equivalent: Decimal
    cash_balance: Decimal
    pending_withdrawal: Decimal
    total_earnings: Decimal
    total_withdrawals: Decimal
    today_earnings: int
    month_earnings: int
    package: PackageTermsResponse
    kyc_status: KycStatus
    can_withdraw: bool
    referral_code: str


class AdjustmentRequest(BaseModel):
    points: int = Field(default=0, description="Signed points delta")
    amount: Decimal = Field(default=Decimal("0"), description="Signed cash delta")
    reason: str = Field(..., min_length=1, max_length=255)


class EarningRequest(BaseModel):
    """Earning reported by the task system once a submission is approved."""

    account_id: uuid.UUID
    points: int = Field(..., gt=0)
    source_type: str = Field(default="TASK", min_length=1, max_length=64)
    source_event_id: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(default=None, max_length=255)
    type: TransactionType = TransactionType.TASK_REWARD


class EarningResponse(BaseModel):
    transaction: TransactionResponse
    created: bool = Field(..., description="False when the event was a replay")
    commissions: list[ReferralEarningResponse]


class AccountOpenRequest(BaseModel):
    """Provision a wallet for a user created by the identity service."""

    account_id: uuid.UUID
    referral_code: str | None = Field(default=None, max_length=32)
    package_tier: str | None = Field(default=None, max_length=32)
    kyc_status: KycStatus = KycStatus.PENDING
    role: AccountRole = AccountRole.USER


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    referral_code: str
    referred_by_id: uuid.UUID | None = None
    package_tier: str | None = None
    kyc_status: KycStatus
    role: AccountRole
    is_active: bool
    points_balance: int
    cash_balance: Decimal
    total_earnings: Decimal
    total_withdrawals: Decimal
    created_at: dt.datetime


class ReconciliationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: uuid.UUID
    points_balance: int
    points_from_log: int
    cash_balance: Decimal
    cash_from_log: Decimal
    points_drift: int
    cash_drift: Decimal
    is_balanced: bool
