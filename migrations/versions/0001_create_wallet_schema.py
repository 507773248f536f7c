"""create wallet schema

Revision ID: 0001_create_wallet_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from wallet_service.db.types import GUID, JSONType, UTCDateTime

# revision identifiers, used by Alembic.
revision = "0001_create_wallet_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "packages",
        sa.Column("tier", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "min_withdrawal",
            sa.Numeric(12, 2),
            nullable=False,
            server_default=sa.text("5.00"),
        ),
        sa.Column(
            "withdrawal_fee_discount",
            sa.Numeric(5, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("tier", name="pk_packages"),
    )

    op.create_table(
        "accounts",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("referral_code", sa.String(length=32), nullable=False),
        sa.Column("referred_by_id", GUID(), nullable=True),
        sa.Column(
            "kyc_status",
            _enum("kyc_status", "PENDING", "SUBMITTED", "APPROVED", "REJECTED"),
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column("package_tier", sa.String(length=32), nullable=True),
        sa.Column(
            "role",
            _enum("account_role", "USER", "ADMIN"),
            nullable=False,
            server_default=sa.text("'USER'"),
        ),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "points_balance",
            sa.BigInteger(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "cash_balance",
            sa.Numeric(14, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "total_earnings",
            sa.Numeric(14, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "total_withdrawals",
            sa.Numeric(14, 2),
            nullable=False,
            server_default=sa.text("0"),
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_accounts"),
        sa.UniqueConstraint("referral_code", name="uq_accounts_referral_code"),
        sa.ForeignKeyConstraint(
            ["referred_by_id"],
            ["accounts.id"],
            name="fk_accounts_referred_by_id_accounts",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["package_tier"],
            ["packages.tier"],
            name="fk_accounts_package_tier_packages",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint(
            "points_balance >= 0", name="ck_accounts_points_balance_non_negative"
        ),
        sa.CheckConstraint(
            "cash_balance >= 0", name="ck_accounts_cash_balance_non_negative"
        ),
    )
    op.create_index(
        "ix_accounts_referred_by_id", "accounts", ["referred_by_id"], unique=False
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("account_id", GUID(), nullable=False),
        sa.Column(
            "type",
            _enum(
                "transaction_type",
                "TASK_REWARD",
                "REFERRAL_BONUS",
                "BONUS",
                "WITHDRAWAL",
                "REFUND",
                "ADJUSTMENT",
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("transaction_status", "PENDING", "COMPLETED", "REJECTED"),
            nullable=False,
            server_default=sa.text("'COMPLETED'"),
        ),
        sa.Column(
            "points", sa.BigInteger(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("reference", sa.String(length=128), nullable=True),
        sa.Column("metadata", JSONType(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_transactions"),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_ledger_transactions_account_id_accounts",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_ledger_transactions_account_created",
        "ledger_transactions",
        ["account_id", "created_at"],
    )
    op.create_index(
        "ix_ledger_transactions_reference", "ledger_transactions", ["reference"]
    )

    op.create_table(
        "withdrawals",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("account_id", GUID(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("points_held", sa.BigInteger(), nullable=False),
        sa.Column(
            "method",
            _enum("payment_method", "BKASH", "NAGAD", "ROCKET", "BINANCE", "PAYPAL"),
            nullable=False,
        ),
        sa.Column("account_details", JSONType(), nullable=False),
        sa.Column(
            "status",
            _enum(
                "withdrawal_status",
                "PENDING",
                "PROCESSING",
                "COMPLETED",
                "REJECTED",
                "CANCELLED",
            ),
            nullable=False,
            server_default=sa.text("'PENDING'"),
        ),
        sa.Column("hold_transaction_id", GUID(), nullable=True),
        sa.Column("payout_reference", sa.String(length=128), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("processed_by", GUID(), nullable=True),
        sa.Column("processed_at", UTCDateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_withdrawals"),
        sa.UniqueConstraint(
            "hold_transaction_id", name="uq_withdrawals_hold_transaction_id"
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_withdrawals_account_id_accounts",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["hold_transaction_id"],
            ["ledger_transactions.id"],
            name="fk_withdrawals_hold_transaction_id_ledger_transactions",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
        sa.CheckConstraint(
            "points_held > 0", name="ck_withdrawals_points_held_positive"
        ),
    )
    op.create_index(
        "ix_withdrawals_account_created", "withdrawals", ["account_id", "created_at"]
    )
    op.create_index("ix_withdrawals_status", "withdrawals", ["status"])

    op.create_table(
        "referral_levels",
        sa.Column("level", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column(
            "commission_type",
            _enum("commission_type", "PERCENTAGE", "FLAT"),
            nullable=False,
            server_default=sa.text("'PERCENTAGE'"),
        ),
        sa.Column("commission_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("level", name="pk_referral_levels"),
        sa.CheckConstraint(
            "level >= 1 AND level <= 10", name="ck_referral_levels_level_range"
        ),
        sa.CheckConstraint(
            "commission_value >= 0",
            name="ck_referral_levels_commission_non_negative",
        ),
    )

    op.create_table(
        "referral_earnings",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("account_id", GUID(), nullable=False),
        sa.Column("source_account_id", GUID(), nullable=False),
        sa.Column("source_event_id", sa.String(length=128), nullable=False),
        sa.Column("source_type", sa.String(length=64), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("points", sa.BigInteger(), nullable=False),
        sa.Column(
            "amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("transaction_id", GUID(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_referral_earnings"),
        sa.UniqueConstraint(
            "source_type",
            "source_event_id",
            "level",
            name="uq_referral_earnings_event_level",
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_referral_earnings_account_id_accounts",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["source_account_id"],
            ["accounts.id"],
            name="fk_referral_earnings_source_account_id_accounts",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["ledger_transactions.id"],
            name="fk_referral_earnings_transaction_id_ledger_transactions",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_referral_earnings_account_created",
        "referral_earnings",
        ["account_id", "created_at"],
    )
    op.create_index(
        "ix_referral_earnings_source_account_id",
        "referral_earnings",
        ["source_account_id"],
    )

    op.create_table(
        "earning_events",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("account_id", GUID(), nullable=False),
        sa.Column("source_type", sa.String(length=64), nullable=False),
        sa.Column("source_event_id", sa.String(length=128), nullable=False),
        sa.Column("points", sa.BigInteger(), nullable=False),
        sa.Column("transaction_id", GUID(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_earning_events"),
        sa.UniqueConstraint(
            "source_type", "source_event_id", name="uq_earning_events_source"
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_earning_events_account_id_accounts",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["transaction_id"],
            ["ledger_transactions.id"],
            name="fk_earning_events_transaction_id_ledger_transactions",
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_earning_events_account_id", "earning_events", ["account_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_earning_events_account_id", table_name="earning_events")
    op.drop_table("earning_events")
    op.drop_index(
        "ix_referral_earnings_source_account_id", table_name="referral_earnings"
    )
    op.drop_index(
        "ix_referral_earnings_account_created", table_name="referral_earnings"
    )
    op.drop_table("referral_earnings")
    op.drop_table("referral_levels")
    op.drop_index("ix_withdrawals_status", table_name="withdrawals")
    op.drop_index("ix_withdrawals_account_created", table_name="withdrawals")
    op.drop_table("withdrawals")
    op.drop_index(
        "ix_ledger_transactions_reference", table_name="ledger_transactions"
    )
    op.drop_index(
        "ix_ledger_transactions_account_created", table_name="ledger_transactions"
    )
    op.drop_table("ledger_transactions")
    op.drop_index("ix_accounts_referred_by_id", table_name="accounts")
    op.drop_table("accounts")
    op.drop_table("packages")
