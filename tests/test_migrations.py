from __future__ import annotations

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from wallet_service.db.base import metadata

PROJECT_ROOT = Path(__file__).resolve().parent.parent

EXPECTED_TABLES = {
    "packages",
    "accounts",
    "ledger_transactions",
    "withdrawals",
    "referral_levels",
    "referral_earnings",
    "earning_events",
}


def _alembic_config(monkeypatch: pytest.MonkeyPatch, db_path: Path) -> Config:
    monkeypatch.setenv("DATABASE__URL", f"sqlite+aiosqlite:///{db_path}")
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.attributes["configure_logger"] = False
    return config


def test_upgrade_creates_wallet_schema(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    db_path = tmp_path / "migrations.db"
    command.upgrade(_alembic_config(monkeypatch, db_path), "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        assert EXPECTED_TABLES <= tables
        assert set(metadata.tables) <= tables

        withdrawal_columns = {
            column["name"] for column in inspector.get_columns("withdrawals")
        }
        assert {"points_held", "fee", "net_amount", "payout_reference"} <= (
            withdrawal_columns
        )
        unique_names = {
            constraint["name"]
            for constraint in inspector.get_unique_constraints("referral_earnings")
        }
        assert unique_names
    finally:
        engine.dispose()


def test_downgrade_drops_everything(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    db_path = tmp_path / "migrations.db"
    config = _alembic_config(monkeypatch, db_path)

    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        remaining = set(inspect(engine).get_table_names()) - {"alembic_version"}
        assert remaining == set()
    finally:
        engine.dispose()
