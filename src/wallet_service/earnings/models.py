from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wallet_service.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wallet_service.db.types import GUID


class EarningEvent(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Idempotency record for an earning reported by an upstream system."""

    __tablename__ = "earning_events"
    __table_args__ = (
        UniqueConstraint(
            "source_type", "source_event_id", name="uq_earning_events_source"
        ),
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    source_type: Mapped[str] = mapped_column(String(64), nullable=False)
    source_event_id: Mapped[str] = mapped_column(String(128), nullable=False)
    points: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("ledger_transactions.id", ondelete="RESTRICT"),
        nullable=False,
    )
