from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from wallet_service.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wallet_service.db.types import GUID

from .enums import CommissionType


class ReferralLevel(TimestampMixin, Base):
    """Commission configuration for one depth of the referral tree."""

    __tablename__ = "referral_levels"
    __table_args__ = (
        CheckConstraint("level >= 1 AND level <= 10", name="level_range"),
        CheckConstraint("commission_value >= 0", name="commission_non_negative"),
    )

    level: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    commission_type: Mapped[CommissionType] = mapped_column(
        Enum(CommissionType, name="commission_type", native_enum=False),
        nullable=False,
        default=CommissionType.PERCENTAGE,
    )
    commission_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ReferralEarning(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Commission paid to an ancestor for one level of one earning event."""

    __tablename__ = "referral_earnings"
    __table_args__ = (
        UniqueConstraint(
            "source_type",
            "source_event_id",
            "level",
            name="uq_referral_earnings_event_level",
        ),
        Index("ix_referral_earnings_account_created", "account_id", "created_at"),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    source_account_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    source_event_id: Mapped[str] = mapped_column(String(128), nullable=False)
    source_type: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("ledger_transactions.id", ondelete="RESTRICT"),
        nullable=False,
    )
