from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from wallet_service.db.base import Base, TimestampMixin
from wallet_service.db.types import GUID

from .enums import AccountRole, KycStatus


class Package(TimestampMixin, Base):
    """Subscription tier terms that affect withdrawals."""

    __tablename__ = "packages"

    tier: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    min_withdrawal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("5.00")
    )
    withdrawal_fee_discount: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Account(TimestampMixin, Base):
    """Per-user ledger account.

    Balances change only through the ledger service; the remaining columns are
    owned by collaborating systems (registration, KYC review, subscriptions)
    and are read here.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="points_balance_non_negative"),
        CheckConstraint("cash_balance >= 0", name="cash_balance_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(), primary_key=True, default=uuid.uuid4, nullable=False
    )
    referral_code: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True
    )
    referred_by_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    kyc_status: Mapped[KycStatus] = mapped_column(
        Enum(KycStatus, name="kyc_status", native_enum=False),
        nullable=False,
        default=KycStatus.PENDING,
    )
    package_tier: Mapped[str | None] = mapped_column(
        String(32),
        ForeignKey("packages.tier", ondelete="SET NULL"),
        nullable=True,
    )
    role: Mapped[AccountRole] = mapped_column(
        Enum(AccountRole, name="account_role", native_enum=False),
        nullable=False,
        default=AccountRole.USER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    points_balance: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    cash_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    total_withdrawals: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
