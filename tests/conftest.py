from __future__ import annotations

import datetime as dt
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import wallet_service.accounts.models  # noqa: F401
import wallet_service.earnings.models  # noqa: F401
import wallet_service.ledger.models  # noqa: F401
import wallet_service.referrals.models  # noqa: F401
import wallet_service.withdrawals.models  # noqa: F401
from tests.factories import FrozenClock, RecordingNotifier
from wallet_service.api.dependencies.services import (
    get_notification_emitter,
    reset_service_dependencies,
)
from wallet_service.app import create_app
from wallet_service.core.config import ReferralSettings, WithdrawalSettings, get_settings
from wallet_service.db import session as db_session
from wallet_service.db.base import Base
from wallet_service.db.dependencies import get_db_session
from wallet_service.db.session import dispose_engine
from wallet_service.earnings.service import EarningsService
from wallet_service.ledger.service import LedgerService
from wallet_service.referrals.service import ReferralService
from wallet_service.withdrawals.service import WithdrawalService

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture(autouse=True)
def configure_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("SENTRY__ENABLED", "false")
    monkeypatch.delenv("DATABASE__URL", raising=False)

    get_settings.cache_clear()
    reset_service_dependencies()
    try:
        yield
    finally:
        get_settings.cache_clear()
        reset_service_dependencies()


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    db_path = tmp_path / "wallet-tests.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    db_session._ENGINE = engine
    db_session._SESSION_FACTORY = factory

    try:
        yield factory
    finally:
        await dispose_engine()


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(dt.datetime(2026, 3, 10, 12, 0, tzinfo=dt.UTC))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def withdrawal_settings() -> WithdrawalSettings:
    return WithdrawalSettings()


@pytest.fixture
def referral_settings() -> ReferralSettings:
    return ReferralSettings()


@pytest.fixture
def ledger(withdrawal_settings: WithdrawalSettings, clock: FrozenClock) -> LedgerService:
    return LedgerService(withdrawal_settings, clock=clock)


@pytest.fixture
def withdrawals(
    withdrawal_settings: WithdrawalSettings,
    ledger: LedgerService,
    notifier: RecordingNotifier,
    clock: FrozenClock,
) -> WithdrawalService:
    return WithdrawalService(withdrawal_settings, ledger, notifier, clock=clock)


@pytest.fixture
def referrals(
    referral_settings: ReferralSettings,
    ledger: LedgerService,
    notifier: RecordingNotifier,
    clock: FrozenClock,
) -> ReferralService:
    return ReferralService(referral_settings, ledger, notifier, clock=clock)


@pytest.fixture
def earnings(ledger: LedgerService, referrals: ReferralService) -> EarningsService:
    return EarningsService(ledger, referrals)


@pytest_asyncio.fixture()
async def app(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: RecordingNotifier,
) -> AsyncIterator[FastAPI]:
    application = create_app()

    async def override_get_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    application.dependency_overrides[get_db_session] = override_get_db_session
    application.dependency_overrides[get_notification_emitter] = lambda: notifier

    try:
        async with application.router.lifespan_context(application):
            yield application
    finally:
        application.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as http_client:
        yield http_client
