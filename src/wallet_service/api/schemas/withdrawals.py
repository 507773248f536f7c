from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from wallet_service.withdrawals.enums import (
    PaymentMethod,
    WithdrawalAction,
    WithdrawalStatus,
)


class WithdrawalCreateRequest(BaseModel):
    """Request body for a new withdrawal.

    Fields are only type-checked here. The withdrawal service validates them
    in a fixed order and reports the first failing check.
    """

    amount: Decimal = Field(..., description="Requested amount in currency units")
    method: str = Field(..., description="Payment method, e.g. BKASH or PAYPAL")
    account_details: dict[str, Any] | None = Field(
        default=None,
        description="Payout destination; the required keys depend on the method",
    )


class WithdrawalResponse(BaseModel):
    """Withdrawal as exposed to its owner and to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_id: uuid.UUID = Field(..., description="Owner of the withdrawal")
    amount: Decimal = Field(..., description="Requested amount")
    fee: Decimal = Field(..., description="Fee frozen at request time")
    net_amount: Decimal = Field(..., description="Amount paid out after the fee")
    points_held: int = Field(..., description="Points held for this request")
    method: PaymentMethod
    account_details: dict[str, Any]
    status: WithdrawalStatus
    transaction_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("payout_reference", "transaction_id"),
        description="External payout reference attached on approval",
    )
    rejection_reason: str | None = None
    processed_by: uuid.UUID | None = None
    created_at: dt.datetime
    processed_at: dt.datetime | None = None


class WithdrawalCreatedResponse(BaseModel):
    withdrawal: WithdrawalResponse
    fee: Decimal
    net_amount: Decimal
    status: WithdrawalStatus
    estimated_processing_time: str


class StatusTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: Decimal = Field(..., description="Sum of requested amounts")
    count: int = Field(..., description="Number of withdrawals")


class WithdrawalSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    pending: StatusTotalsResponse
    completed: StatusTotalsResponse
    rejected: StatusTotalsResponse


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    summary: WithdrawalSummaryResponse


class AdminWithdrawalListResponse(BaseModel):
    items: list[WithdrawalResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    counts: dict[WithdrawalStatus, int] = Field(
        ..., description="Number of withdrawals in each status across all users"
    )


class WithdrawalActionRequest(BaseModel):
    """Admin decision on an open withdrawal."""

    action: WithdrawalAction
    transaction_id: str | None = Field(
        default=None,
        max_length=128,
        description="External payout reference, recorded on approval",
    )
    rejection_reason: str | None = Field(
        default=None,
        max_length=500,
        description="Required when rejecting",
    )
