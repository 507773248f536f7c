from __future__ import annotations

import datetime as dt
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from wallet_service.accounts.enums import AccountRole, KycStatus
from wallet_service.accounts.models import Account, Package
from wallet_service.core.config import WithdrawalSettings
from wallet_service.core.constants import CENT
from wallet_service.core.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidTransitionError,
    PersistenceFailureError,
    ValidationError,
)
from wallet_service.db.base import utcnow
from wallet_service.db.pagination import PaginationParams, paginate_query
from wallet_service.fees.calculator import PackageTerms
from wallet_service.referrals.exceptions import InvalidReferralCodeError
from wallet_service.withdrawals.enums import OPEN_STATUSES
from wallet_service.withdrawals.models import Withdrawal

from .enums import TransactionStatus, TransactionType
from .locks import account_unit_of_work
from .models import Transaction

Clock = Callable[[], dt.datetime]

_ZERO = Decimal("0")
_REFERRAL_CODE_ATTEMPTS = 5


@dataclass(slots=True)
class TransactionSummary:
    """Completed points grouped by category."""

    total_earnings: int = 0
    total_referrals: int = 0
    total_bonuses: int = 0
    total_withdrawals: int = 0


@dataclass(slots=True)
class TransactionPage:
    items: list[Transaction]
    total: int
    summary: TransactionSummary


@dataclass(slots=True)
class ReconciliationReport:
    account_id: uuid.UUID
    points_balance: int
    points_from_log: int
    cash_balance: Decimal
    cash_from_log: Decimal

    @property
    def points_drift(self) -> int:
        return self.points_balance - self.points_from_log

    @property
    def cash_drift(self) -> Decimal:
        return self.cash_balance - self.cash_from_log

    @property
    def is_balanced(self) -> bool:
        return self.points_drift == 0 and self.cash_drift == _ZERO


@dataclass(slots=True)
class WalletSummary:
    account_id: uuid.UUID
    points: int
    available_points: int
    cash_equivalent: Decimal
    cash_balance: Decimal
    pending_withdrawal: Decimal
    total_earnings: Decimal
    total_withdrawals: Decimal
    today_earnings: int
    month_earnings: int
    package: PackageTerms
    kyc_status: KycStatus
    can_withdraw: bool
    referral_code: str = field(default="")


class LedgerService:
    """Balance ledger backed by the append-only transaction log.

    :meth:`record_entry` is the single primitive that moves a balance; it must
    run inside :func:`~wallet_service.ledger.locks.account_unit_of_work`.
    :meth:`credit`, :meth:`debit` and :meth:`adjust` wrap it in their own unit
    of work for callers that mutate a single account.
    """

    def __init__(
        self,
        settings: WithdrawalSettings,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    @property
    def points_per_unit(self) -> int:
        return self._settings.points_per_unit

    def points_to_currency(self, points: int) -> Decimal:
        return (Decimal(points) / Decimal(self.points_per_unit)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )

    async def open_account(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        referral_code: str | None = None,
        package_tier: str | None = None,
        kyc_status: KycStatus = KycStatus.PENDING,
        role: AccountRole = AccountRole.USER,
    ) -> Account:
        """Create a zero-balance account, linking it to its referrer if given.

        The referrer is fixed here and never edited afterwards, so the
        referral graph can only grow downwards and stays acyclic. Opening an
        account that already exists returns it unchanged.
        """

        existing = await session.get(Account, account_id)
        if existing is not None:
            return existing

        referrer_id: uuid.UUID | None = None
        if referral_code:
            referrer = await self.find_by_referral_code(session, referral_code)
            if referrer is None or referrer.id == account_id:
                raise InvalidReferralCodeError()
            referrer_id = referrer.id

        if package_tier is not None and await session.get(Package, package_tier) is None:
            raise ValidationError(f"Unknown package tier: {package_tier}")

        account = Account(
            id=account_id,
            referral_code=await self._generate_referral_code(session),
            referred_by_id=referrer_id,
            package_tier=package_tier,
            kyc_status=kyc_status,
            role=role,
            is_active=True,
            points_balance=0,
            cash_balance=Decimal("0.00"),
            total_earnings=Decimal("0.00"),
            total_withdrawals=Decimal("0.00"),
        )
        session.add(account)
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceFailureError() from exc

        self._logger.info(
            "account_opened",
            account_id=str(account_id),
            referred_by=str(referrer_id) if referrer_id else None,
        )
        return account

    async def find_by_referral_code(
        self, session: AsyncSession, referral_code: str
    ) -> Account | None:
        stmt = select(Account).where(
            Account.referral_code == referral_code.strip().upper()
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _generate_referral_code(self, session: AsyncSession) -> str:
        for _ in range(_REFERRAL_CODE_ATTEMPTS):
            candidate = secrets.token_hex(4).upper()
            if await self.find_by_referral_code(session, candidate) is None:
                return candidate
        raise PersistenceFailureError("Could not allocate a unique referral code")

    async def get_account(self, session: AsyncSession, account_id: uuid.UUID) -> Account:
        account = await session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError()
        return account

    async def package_terms(self, session: AsyncSession, account: Account) -> PackageTerms:
        default_minimum = self._settings.default_package_minimum
        if account.package_tier is None:
            return PackageTerms(tier=None, name=None, min_withdrawal=default_minimum)

        package = await session.get(Package, account.package_tier)
        if package is None or not package.is_active:
            return PackageTerms(
                tier=account.package_tier,
                name=account.package_tier,
                min_withdrawal=default_minimum,
            )
        return PackageTerms(
            tier=package.tier,
            name=package.name,
            min_withdrawal=package.min_withdrawal,
            fee_discount=package.withdrawal_fee_discount,
        )

    async def record_entry(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        points: int = 0,
        amount: Decimal = _ZERO,
        type: TransactionType,
        description: str,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> Transaction:
        """Move the balances by the given deltas and log the movement.

        The balance update is a single guarded statement, so a debit that
        would take either balance below zero matches no row and nothing is
        written.
        """

        amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
        if points == 0 and amount == _ZERO:
            raise ValidationError("Ledger entries must change a balance")

        values: dict[Any, Any] = {
            Account.points_balance: Account.points_balance + points,
            Account.cash_balance: Account.cash_balance + amount,
        }
        if type.is_earning:
            earned = self.points_to_currency(points) + amount
            values[Account.total_earnings] = Account.total_earnings + earned

        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.points_balance + points >= 0,
                Account.cash_balance + amount >= 0,
            )
            .values(values)
            .returning(
                Account.points_balance,
                Account.cash_balance,
                Account.total_earnings,
                Account.total_withdrawals,
            )
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(stmt)).one_or_none()
        if row is None:
            exists = await session.scalar(
                select(Account.id).where(Account.id == account_id)
            )
            if exists is None:
                raise AccountNotFoundError()
            raise InsufficientBalanceError(
                required=abs(points) if points < 0 else abs(amount)
            )

        await self._sync_balances(session, account_id, row)

        transaction = Transaction(
            account_id=account_id,
            type=type,
            status=status,
            points=points,
            amount=amount,
            description=description,
            reference=reference,
            meta_data=dict(metadata or {}),
            created_at=self._clock(),
        )
        session.add(transaction)
        await session.flush()

        self._logger.info(
            "ledger_entry_recorded",
            account_id=str(account_id),
            transaction_id=str(transaction.id),
            type=type.value,
            status=status.value,
            points=points,
            amount=str(amount),
            reference=reference,
        )
        return transaction

    async def _sync_balances(
        self, session: AsyncSession, account_id: uuid.UUID, row: Any
    ) -> None:
        account = await session.get(Account, account_id)
        if account is None:
            return
        set_committed_value(account, "points_balance", row.points_balance)
        set_committed_value(account, "cash_balance", row.cash_balance)
        set_committed_value(account, "total_earnings", row.total_earnings)
        set_committed_value(account, "total_withdrawals", row.total_withdrawals)

    async def credit(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        points: int = 0,
        amount: Decimal = _ZERO,
        type: TransactionType,
        description: str,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> Transaction:
        async with account_unit_of_work(session, account_id):
            transaction = await self.record_entry(
                session,
                account_id,
                points=points,
                amount=amount,
                type=type,
                description=description,
                reference=reference,
                metadata=metadata,
                status=status,
            )
        return transaction

    async def debit(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        points: int = 0,
        amount: Decimal = _ZERO,
        type: TransactionType,
        description: str,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
    ) -> Transaction:
        """Credit with negated deltas; ``points`` and ``amount`` are magnitudes."""

        return await self.credit(
            session,
            account_id,
            points=-abs(points),
            amount=-abs(Decimal(amount)),
            type=type,
            description=description,
            reference=reference,
            metadata=metadata,
            status=status,
        )

    async def adjust(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        points: int = 0,
        amount: Decimal = _ZERO,
        reason: str,
        actor_id: uuid.UUID,
    ) -> Transaction:
        """Post an administrative correction as an ADJUSTMENT entry."""

        reason = reason.strip()
        if not reason:
            raise ValidationError("Adjustment reason is required")

        transaction = await self.credit(
            session,
            account_id,
            points=points,
            amount=amount,
            type=TransactionType.ADJUSTMENT,
            description=f"Balance adjustment: {reason}",
            metadata={"actorId": str(actor_id), "reason": reason},
        )
        self._logger.info(
            "ledger_adjusted",
            account_id=str(account_id),
            actor_id=str(actor_id),
            points=points,
            amount=str(amount),
        )
        return transaction

    async def set_transaction_status(
        self,
        session: AsyncSession,
        transaction_id: uuid.UUID,
        status: TransactionStatus,
        *,
        expected: TransactionStatus = TransactionStatus.PENDING,
    ) -> None:
        """Move a transaction out of ``expected``; its deltas are never touched."""

        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == expected)
            .values(status=status, updated_at=self._clock())
            .returning(Transaction.id)
            .execution_options(synchronize_session=False)
        )
        if (await session.execute(stmt)).scalar_one_or_none() is None:
            raise InvalidTransitionError(
                f"Transaction is not {expected.value.lower()}"
            )

    async def held_points(self, session: AsyncSession, account_id: uuid.UUID) -> int:
        stmt = select(func.coalesce(func.sum(Withdrawal.points_held), 0)).where(
            Withdrawal.account_id == account_id,
            Withdrawal.status.in_(OPEN_STATUSES),
        )
        return int(await session.scalar(stmt) or 0)

    async def available_balance(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> int:
        """Points balance minus points held by open withdrawals."""

        points = await session.scalar(
            select(Account.points_balance).where(Account.id == account_id)
        )
        if points is None:
            raise AccountNotFoundError()
        return int(points) - await self.held_points(session, account_id)

    async def list_transactions(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        pagination: PaginationParams,
        type: TransactionType | None = None,
        status: TransactionStatus | None = None,
    ) -> TransactionPage:
        stmt = select(Transaction).where(Transaction.account_id == account_id)
        if type is not None:
            stmt = stmt.where(Transaction.type == type)
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())

        items, total = await paginate_query(session, stmt, pagination)
        summary = await self.transaction_summary(session, account_id)
        return TransactionPage(items=items, total=total, summary=summary)

    async def transaction_summary(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> TransactionSummary:
        stmt = (
            select(Transaction.type, func.coalesce(func.sum(Transaction.points), 0))
            .where(
                Transaction.account_id == account_id,
                Transaction.status == TransactionStatus.COMPLETED,
            )
            .group_by(Transaction.type)
        )
        totals = {row[0]: int(row[1]) for row in await session.execute(stmt)}
        return TransactionSummary(
            total_earnings=totals.get(TransactionType.TASK_REWARD, 0),
            total_referrals=totals.get(TransactionType.REFERRAL_BONUS, 0),
            total_bonuses=totals.get(TransactionType.BONUS, 0),
            total_withdrawals=abs(totals.get(TransactionType.WITHDRAWAL, 0)),
        )

    async def reconcile(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> ReconciliationReport:
        """Compare stored balances with the sums of every logged delta."""

        account = await self.get_account(session, account_id)
        await session.refresh(account)
        stmt = select(
            func.coalesce(func.sum(Transaction.points), 0),
            func.coalesce(func.sum(Transaction.amount), 0),
        ).where(Transaction.account_id == account_id)
        points_sum, cash_sum = (await session.execute(stmt)).one()

        report = ReconciliationReport(
            account_id=account_id,
            points_balance=int(account.points_balance),
            points_from_log=int(points_sum),
            cash_balance=Decimal(account.cash_balance).quantize(CENT),
            cash_from_log=Decimal(str(cash_sum)).quantize(CENT),
        )
        if not report.is_balanced:
            self._logger.error(
                "ledger_drift_detected",
                account_id=str(account_id),
                points_drift=report.points_drift,
                cash_drift=str(report.cash_drift),
            )
        return report

    async def _earned_points_since(
        self, session: AsyncSession, account_id: uuid.UUID, since: dt.datetime
    ) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.points), 0)).where(
            Transaction.account_id == account_id,
            Transaction.type == TransactionType.TASK_REWARD,
            Transaction.status == TransactionStatus.COMPLETED,
            Transaction.created_at >= since,
        )
        return int(await session.scalar(stmt) or 0)

    async def wallet_summary(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> WalletSummary:
        account = await self.get_account(session, account_id)
        await session.refresh(account)
        available = await self.available_balance(session, account_id)
        terms = await self.package_terms(session, account)

        pending_stmt = select(func.coalesce(func.sum(Withdrawal.amount), 0)).where(
            Withdrawal.account_id == account_id,
            Withdrawal.status.in_(OPEN_STATUSES),
        )
        pending_amount = Decimal(str(await session.scalar(pending_stmt) or 0))

        now = self._clock()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = today_start.replace(day=1)

        can_withdraw = (
            account.kyc_status is KycStatus.APPROVED
            and available >= terms.min_withdrawal * self.points_per_unit
        )
        return WalletSummary(
            account_id=account.id,
            points=account.points_balance,
            available_points=max(0, available),
            cash_equivalent=self.points_to_currency(account.points_balance),
            cash_balance=account.cash_balance,
            pending_withdrawal=pending_amount.quantize(CENT),
            total_earnings=account.total_earnings,
            total_withdrawals=account.total_withdrawals,
            today_earnings=await self._earned_points_since(
                session, account_id, today_start
            ),
            month_earnings=await self._earned_points_since(
                session, account_id, month_start
            ),
            package=terms,
            kyc_status=account.kyc_status,
            can_withdraw=can_withdraw,
            referral_code=account.referral_code,
        )
