from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import (
    MOBILE_DETAILS,
    balance_of,
    create_package,
    open_account,
    reload_account,
)
from wallet_service.accounts.enums import KycStatus
from wallet_service.core.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    ValidationError,
)
from wallet_service.db.pagination import PaginationParams
from wallet_service.ledger.locks import hold_account_lock, locked_account_ids
from wallet_service.ledger.enums import TransactionStatus, TransactionType
from wallet_service.ledger.models import Transaction
from wallet_service.ledger.service import LedgerService
from wallet_service.referrals.exceptions import InvalidReferralCodeError
from wallet_service.withdrawals.service import WithdrawalService


class TestOpenAccount:
    async def test_new_account_starts_empty(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger, kyc_status=KycStatus.PENDING)

        assert account.points_balance == 0
        assert account.cash_balance == Decimal("0.00")
        assert account.total_earnings == Decimal("0.00")
        assert account.referred_by_id is None
        assert len(account.referral_code) == 8
        assert account.referral_code == account.referral_code.upper()

    async def test_open_is_idempotent(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account_id = uuid.uuid4()
        first = await ledger.open_account(session, account_id)
        second = await ledger.open_account(session, account_id)

        assert first.id == second.id
        assert first.referral_code == second.referral_code

    async def test_referral_code_links_referrer(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        referrer = await open_account(session, ledger)
        referred = await open_account(
            session, ledger, referral_code=referrer.referral_code.lower()
        )

        assert referred.referred_by_id == referrer.id

    async def test_unknown_referral_code_is_rejected(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        with pytest.raises(InvalidReferralCodeError):
            await open_account(session, ledger, referral_code="NOPE1234")

    async def test_unknown_package_is_rejected(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        with pytest.raises(ValidationError):
            await open_account(session, ledger, package_tier="PLATINUM")


class TestBalanceMutations:
    async def test_credit_and_debit_log_signed_deltas(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)

        credit = await ledger.credit(
            session,
            account.id,
            points=2500,
            type=TransactionType.TASK_REWARD,
            description="Task reward",
        )
        debit = await ledger.debit(
            session,
            account.id,
            points=1000,
            type=TransactionType.ADJUSTMENT,
            description="Correction",
        )

        assert credit.points == 2500
        assert debit.points == -1000
        refreshed = await reload_account(session, account.id)
        assert refreshed.points_balance == 1500
        assert refreshed.total_earnings == Decimal("2.50")

    async def test_overdraft_is_refused_without_side_effects(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger, points=500)

        with pytest.raises(InsufficientBalanceError):
            await ledger.debit(
                session,
                account.id,
                points=501,
                type=TransactionType.ADJUSTMENT,
                description="Too much",
            )

        assert await balance_of(session, account.id) == 500
        count = await session.scalar(
            select(func.count()).where(Transaction.account_id == account.id)
        )
        assert count == 1

    async def test_cash_balance_cannot_go_negative(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)

        with pytest.raises(InsufficientBalanceError):
            await ledger.debit(
                session,
                account.id,
                amount=Decimal("0.01"),
                type=TransactionType.ADJUSTMENT,
                description="Cash debit",
            )

    async def test_zero_entry_is_rejected(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)

        with pytest.raises(ValidationError):
            await ledger.credit(
                session,
                account.id,
                type=TransactionType.BONUS,
                description="Nothing",
            )

    async def test_unknown_account(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        with pytest.raises(AccountNotFoundError):
            await ledger.credit(
                session,
                uuid.uuid4(),
                points=10,
                type=TransactionType.BONUS,
                description="Ghost",
            )

    async def test_adjust_requires_reason_and_records_actor(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger, points=100)
        admin = await open_account(session, ledger)

        with pytest.raises(ValidationError):
            await ledger.adjust(
                session, account.id, points=-50, reason="  ", actor_id=admin.id
            )

        transaction = await ledger.adjust(
            session,
            account.id,
            points=-50,
            amount=Decimal("1.25"),
            reason="Duplicate reward",
            actor_id=admin.id,
        )

        assert transaction.type is TransactionType.ADJUSTMENT
        assert transaction.meta_data["actorId"] == str(admin.id)
        refreshed = await reload_account(session, account.id)
        assert refreshed.points_balance == 50
        assert refreshed.cash_balance == Decimal("1.25")


class TestAccountLocks:
    async def test_lock_is_released_from_registry_after_credit(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)

        await ledger.credit(
            session,
            account.id,
            points=10,
            type=TransactionType.BONUS,
            description="Bonus",
        )

        assert locked_account_ids() == frozenset()

    async def test_lock_is_released_from_registry_after_failure(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)

        with pytest.raises(InsufficientBalanceError):
            await ledger.debit(
                session,
                account.id,
                points=1,
                type=TransactionType.ADJUSTMENT,
                description="Overdraft",
            )

        assert locked_account_ids() == frozenset()

    async def test_waiter_keeps_lock_registered_until_it_runs(self) -> None:
        account_id = uuid.uuid4()
        order: list[str] = []

        async def second() -> None:
            async with hold_account_lock(account_id):
                order.append("second")

        async with hold_account_lock(account_id):
            task = asyncio.create_task(second())
            await asyncio.sleep(0)
            order.append("first")
            assert locked_account_ids() == {account_id}

        await task

        assert order == ["first", "second"]
        assert locked_account_ids() == frozenset()


class TestQueries:
    async def test_reconcile_matches_log_after_mixed_activity(
        self,
        session: AsyncSession,
        ledger: LedgerService,
        withdrawals: WithdrawalService,
    ) -> None:
        account = await open_account(session, ledger, points=60000)
        admin = await open_account(session, ledger)
        receipt = await withdrawals.create_withdrawal(
            session,
            account.id,
            amount=Decimal("20"),
            method="BKASH",
            account_details=MOBILE_DETAILS,
        )
        await withdrawals.reject(
            session, receipt.withdrawal.id, admin_id=admin.id, reason="Wrong number"
        )
        await ledger.adjust(
            session,
            account.id,
            amount=Decimal("3.50"),
            reason="Goodwill",
            actor_id=admin.id,
        )

        report = await ledger.reconcile(session, account.id)

        assert report.is_balanced
        assert report.points_balance == 60000
        assert report.points_from_log == 60000
        assert report.cash_from_log == Decimal("3.50")

    async def test_available_balance_subtracts_open_holds(
        self,
        session: AsyncSession,
        ledger: LedgerService,
        withdrawals: WithdrawalService,
    ) -> None:
        account = await open_account(session, ledger, points=80000)
        await withdrawals.create_withdrawal(
            session,
            account.id,
            amount=Decimal("30"),
            method="NAGAD",
            account_details=MOBILE_DETAILS,
        )

        assert await balance_of(session, account.id) == 50000
        assert await ledger.held_points(session, account.id) == 30000
        assert await ledger.available_balance(session, account.id) == 20000

    async def test_list_transactions_filters_and_summarises(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        account = await open_account(session, ledger)
        for index in range(3):
            await ledger.credit(
                session,
                account.id,
                points=100,
                type=TransactionType.TASK_REWARD,
                description=f"Task {index}",
            )
        await ledger.credit(
            session,
            account.id,
            points=40,
            type=TransactionType.REFERRAL_BONUS,
            description="Referral",
        )

        page = await ledger.list_transactions(
            session,
            account.id,
            pagination=PaginationParams(page=1, page_size=2),
            type=TransactionType.TASK_REWARD,
        )

        assert page.total == 3
        assert len(page.items) == 2
        assert all(item.type is TransactionType.TASK_REWARD for item in page.items)
        assert page.summary.total_earnings == 300
        assert page.summary.total_referrals == 40

        pending = await ledger.list_transactions(
            session,
            account.id,
            pagination=PaginationParams(),
            status=TransactionStatus.PENDING,
        )
        assert pending.total == 0

    async def test_wallet_summary_reports_package_and_eligibility(
        self, session: AsyncSession, ledger: LedgerService
    ) -> None:
        await create_package(session, tier="GOLD", min_withdrawal=Decimal("20"))
        approved = await open_account(
            session, ledger, package_tier="GOLD", points=25000
        )
        unverified = await open_account(
            session, ledger, kyc_status=KycStatus.PENDING, points=25000
        )
        await ledger.credit(
            session,
            approved.id,
            points=1500,
            type=TransactionType.TASK_REWARD,
            description="Task reward",
        )

        summary = await ledger.wallet_summary(session, approved.id)
        assert summary.points == 26500
        assert summary.cash_equivalent == Decimal("26.50")
        assert summary.package.tier == "GOLD"
        assert summary.package.min_withdrawal == Decimal("20")
        assert summary.today_earnings == 1500
        assert summary.can_withdraw is True

        other = await ledger.wallet_summary(session, unverified.id)
        assert other.can_withdraw is False
        assert other.package.min_withdrawal == Decimal("5")
