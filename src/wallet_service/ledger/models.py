from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    BigInteger,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from wallet_service.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wallet_service.db.types import GUID, JSONType

from .enums import TransactionStatus, TransactionType


class Transaction(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Append-only ledger entry carrying signed point and cash deltas."""

    __tablename__ = "ledger_transactions"
    __table_args__ = (
        Index("ix_ledger_transactions_account_created", "account_id", "created_at"),
        Index("ix_ledger_transactions_reference", "reference"),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, name="transaction_type", native_enum=False),
        nullable=False,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, name="transaction_status", native_enum=False),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )
    points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    meta_data: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONType(), nullable=False, default=dict
    )
