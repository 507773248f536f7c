from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from wallet_service.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wallet_service.db.types import GUID, JSONType, UTCDateTime

from .enums import PaymentMethod, WithdrawalStatus


class Withdrawal(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A request to pay out part of an account's balance."""

    __tablename__ = "withdrawals"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        CheckConstraint("points_held > 0", name="points_held_positive"),
        Index("ix_withdrawals_account_created", "account_id", "created_at"),
        Index("ix_withdrawals_status", "status"),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    points_held: Mapped[int] = mapped_column(BigInteger, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method", native_enum=False),
        nullable=False,
    )
    account_details: Mapped[dict[str, Any]] = mapped_column(
        JSONType(), nullable=False, default=dict
    )
    status: Mapped[WithdrawalStatus] = mapped_column(
        Enum(WithdrawalStatus, name="withdrawal_status", native_enum=False),
        nullable=False,
        default=WithdrawalStatus.PENDING,
    )
    hold_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        ForeignKey("ledger_transactions.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True,
    )
    payout_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    processed_by: Mapped[uuid.UUID | None] = mapped_column(GUID(), nullable=True)
    processed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
