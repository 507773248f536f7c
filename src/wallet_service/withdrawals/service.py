from __future__ import annotations

import datetime as dt
import math
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.enums import KycStatus
from wallet_service.accounts.models import Account
from wallet_service.core.config import WithdrawalSettings
from wallet_service.core.constants import CENT
from wallet_service.core.exceptions import (
    InsufficientBalanceError,
    InvalidTransitionError,
    ValidationError,
)
from wallet_service.db.base import utcnow
from wallet_service.db.pagination import PaginationParams, paginate_query
from wallet_service.fees.calculator import (
    FeeQuote,
    calculate_fee,
    check_minimums,
    format_money,
    resolve_method,
)
from wallet_service.ledger.enums import TransactionStatus, TransactionType
from wallet_service.ledger.locks import account_unit_of_work
from wallet_service.ledger.service import Clock, LedgerService
from wallet_service.notifications.emitter import (
    NotificationEmitter,
    NotificationEvent,
    NotificationKind,
    emit_safely,
)

from .details import parse_account_details
from .enums import (
    COOLDOWN_STATUSES,
    OPEN_STATUSES,
    PaymentMethod,
    WithdrawalAction,
    WithdrawalStatus,
)
from .exceptions import (
    CooldownActiveError,
    InvalidAmountError,
    KycRequiredError,
    WithdrawalNotFoundError,
)
from .models import Withdrawal

_ZERO = Decimal("0")


@dataclass(slots=True)
class WithdrawalReceipt:
    withdrawal: Withdrawal
    quote: FeeQuote
    estimated_processing_time: str


@dataclass(slots=True)
class StatusTotals:
    total: Decimal = _ZERO
    count: int = 0

    def add(self, total: Decimal, count: int) -> None:
        self.total = (self.total + total).quantize(CENT)
        self.count += count


@dataclass(slots=True)
class WithdrawalSummary:
    """Per-user aggregates; open requests count as pending, cancelled as rejected."""

    pending: StatusTotals = field(default_factory=StatusTotals)
    completed: StatusTotals = field(default_factory=StatusTotals)
    rejected: StatusTotals = field(default_factory=StatusTotals)


@dataclass(slots=True)
class WithdrawalPage:
    items: list[Withdrawal]
    total: int
    summary: WithdrawalSummary


@dataclass(slots=True)
class AdminWithdrawalPage:
    items: list[Withdrawal]
    total: int
    counts: dict[WithdrawalStatus, int]


def _hold_reference(withdrawal_id: uuid.UUID) -> str:
    return f"withdrawal_{withdrawal_id}"


def _coerce_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError() from exc
    if not amount.is_finite():
        raise InvalidAmountError()
    if amount <= _ZERO:
        raise InvalidAmountError()
    try:
        in_cents = amount.quantize(CENT)
    except InvalidOperation as exc:
        raise InvalidAmountError() from exc
    if amount != in_cents:
        raise InvalidAmountError("Amount cannot be more precise than one cent")
    return amount


class WithdrawalService:
    """Withdrawal state machine: request and hold, then approve, reject or cancel.

    Every transition locks the owning account, flips the status with a
    compare-and-set and applies the matching ledger movement in the same
    commit. Notifications go out only after that commit.
    """

    def __init__(
        self,
        settings: WithdrawalSettings,
        ledger: LedgerService,
        notifier: NotificationEmitter,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._ledger = ledger
        self._notifier = notifier
        self._clock = clock or utcnow
        self._logger = structlog.get_logger(__name__)

    def points_for(self, amount: Decimal) -> int:
        scaled = amount * self._settings.points_per_unit
        return int(scaled.to_integral_value(rounding=ROUND_CEILING))

    async def create_withdrawal(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        amount: Decimal | str | int,
        method: PaymentMethod | str,
        account_details: dict[str, Any] | None,
    ) -> WithdrawalReceipt:
        """Validate a request, then record it and hold its points in one commit."""

        requested = _coerce_amount(amount)
        resolved_method, schedule = resolve_method(method, self._settings.methods)
        details = parse_account_details(resolved_method, account_details)

        withdrawal_id = uuid.uuid4()
        async with account_unit_of_work(session, account_id) as account:
            terms = await self._ledger.package_terms(session, account)
            check_minimums(resolved_method, requested, schedule, terms)
            quote = calculate_fee(resolved_method, requested, schedule, terms)

            if (
                requested > self._settings.kyc_threshold
                and account.kyc_status is not KycStatus.APPROVED
            ):
                raise KycRequiredError(self._settings.kyc_threshold)

            now = self._clock()
            await self._check_cooldown(session, account_id, now)

            points_needed = self.points_for(requested)
            available = await self._ledger.available_balance(session, account_id)
            if available < points_needed:
                raise InsufficientBalanceError(
                    required=points_needed, available=max(0, available)
                )

            withdrawal = Withdrawal(
                id=withdrawal_id,
                account_id=account_id,
                amount=requested,
                fee=quote.fee,
                net_amount=quote.net_amount,
                points_held=points_needed,
                method=resolved_method,
                account_details=details.model_dump(mode="json", exclude_none=True),
                status=WithdrawalStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            session.add(withdrawal)
            await session.flush()

            hold = await self._ledger.record_entry(
                session,
                account_id,
                points=-points_needed,
                type=TransactionType.WITHDRAWAL,
                status=TransactionStatus.PENDING,
                description=f"Withdrawal request via {resolved_method.value}",
                reference=_hold_reference(withdrawal_id),
                metadata={
                    "withdrawalId": str(withdrawal_id),
                    "method": resolved_method.value,
                    "amount": str(requested),
                    "fee": str(quote.fee),
                    "netAmount": str(quote.net_amount),
                },
            )
            withdrawal.hold_transaction_id = hold.id
            await session.flush()

        self._logger.info(
            "withdrawal_requested",
            withdrawal_id=str(withdrawal_id),
            account_id=str(account_id),
            method=resolved_method.value,
            amount=str(requested),
            fee=str(quote.fee),
            points_held=points_needed,
            destination=withdrawal.account_details,
        )
        await self._emit(
            NotificationKind.WITHDRAWAL_SUBMITTED,
            withdrawal,
            title="Withdrawal Request Submitted",
            message=(
                f"Your withdrawal request of ${format_money(requested)} via "
                f"{resolved_method.value} has been submitted and is pending review."
            ),
        )
        return WithdrawalReceipt(
            withdrawal=withdrawal,
            quote=quote,
            estimated_processing_time=self._settings.estimated_processing_time,
        )

    async def _check_cooldown(
        self, session: AsyncSession, account_id: uuid.UUID, now: dt.datetime
    ) -> None:
        if self._settings.cooldown_hours <= 0:
            return

        stmt = (
            select(Withdrawal.created_at)
            .where(
                Withdrawal.account_id == account_id,
                Withdrawal.status.in_(COOLDOWN_STATUSES),
            )
            .order_by(Withdrawal.created_at.desc())
            .limit(1)
        )
        latest = await session.scalar(stmt)
        if latest is None:
            return

        window = dt.timedelta(hours=self._settings.cooldown_hours)
        elapsed = now - latest
        if elapsed > window:
            return

        remaining_hours = math.ceil((window - elapsed).total_seconds() / 3600)
        raise CooldownActiveError(max(1, remaining_hours))

    async def get_withdrawal(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        account_id: uuid.UUID | None = None,
    ) -> Withdrawal:
        """Fetch a withdrawal; when ``account_id`` is given, only its own."""

        stmt = (
            select(Withdrawal)
            .where(Withdrawal.id == withdrawal_id)
            .execution_options(populate_existing=True)
        )
        if account_id is not None:
            stmt = stmt.where(Withdrawal.account_id == account_id)
        withdrawal = (await session.execute(stmt)).scalar_one_or_none()
        if withdrawal is None:
            raise WithdrawalNotFoundError()
        return withdrawal

    async def _compare_and_set(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        source: tuple[WithdrawalStatus, ...],
        target: WithdrawalStatus,
        **values: Any,
    ) -> None:
        stmt = (
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal_id, Withdrawal.status.in_(source))
            .values(status=target, updated_at=self._clock(), **values)
            .returning(Withdrawal.id)
            .execution_options(synchronize_session=False)
        )
        if (await session.execute(stmt)).scalar_one_or_none() is None:
            raise InvalidTransitionError()

    async def _release_hold(
        self,
        session: AsyncSession,
        withdrawal: Withdrawal,
        *,
        description: str,
        reason: str | None = None,
    ) -> None:
        if withdrawal.hold_transaction_id is not None:
            await self._ledger.set_transaction_status(
                session, withdrawal.hold_transaction_id, TransactionStatus.REJECTED
            )

        metadata: dict[str, Any] = {"withdrawalId": str(withdrawal.id)}
        if reason:
            metadata["reason"] = reason
        await self._ledger.record_entry(
            session,
            withdrawal.account_id,
            points=withdrawal.points_held,
            type=TransactionType.REFUND,
            description=description,
            reference=_hold_reference(withdrawal.id),
            metadata=metadata,
        )

    async def mark_processing(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        admin_id: uuid.UUID,
    ) -> Withdrawal:
        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        async with account_unit_of_work(session, withdrawal.account_id):
            await self._compare_and_set(
                session,
                withdrawal_id,
                source=(WithdrawalStatus.PENDING,),
                target=WithdrawalStatus.PROCESSING,
                processed_by=admin_id,
            )

        self._logger.info(
            "withdrawal_processing",
            withdrawal_id=str(withdrawal_id),
            admin_id=str(admin_id),
        )
        return await self.get_withdrawal(session, withdrawal_id)

    async def approve(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        admin_id: uuid.UUID,
        payout_reference: str | None = None,
    ) -> Withdrawal:
        """Finalise the hold; balances stay as they are."""

        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        async with account_unit_of_work(session, withdrawal.account_id):
            now = self._clock()
            await self._compare_and_set(
                session,
                withdrawal_id,
                source=OPEN_STATUSES,
                target=WithdrawalStatus.COMPLETED,
                payout_reference=payout_reference,
                processed_by=admin_id,
                processed_at=now,
            )
            if withdrawal.hold_transaction_id is not None:
                await self._ledger.set_transaction_status(
                    session,
                    withdrawal.hold_transaction_id,
                    TransactionStatus.COMPLETED,
                )
            await session.execute(
                update(Account)
                .where(Account.id == withdrawal.account_id)
                .values(
                    total_withdrawals=Account.total_withdrawals + withdrawal.amount
                )
                .execution_options(synchronize_session=False)
            )

        self._logger.info(
            "withdrawal_approved",
            withdrawal_id=str(withdrawal_id),
            admin_id=str(admin_id),
            payout_reference=payout_reference,
        )
        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        await self._emit(
            NotificationKind.WITHDRAWAL_APPROVED,
            withdrawal,
            title="Withdrawal Approved",
            message=(
                f"Your withdrawal of ${format_money(withdrawal.amount)} has been "
                f"approved. Net amount: ${format_money(withdrawal.net_amount)}."
            ),
        )
        return withdrawal

    async def reject(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        admin_id: uuid.UUID,
        reason: str | None,
    ) -> Withdrawal:
        """Close the request and refund exactly the points it held."""

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required")

        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        async with account_unit_of_work(session, withdrawal.account_id):
            await self._compare_and_set(
                session,
                withdrawal_id,
                source=OPEN_STATUSES,
                target=WithdrawalStatus.REJECTED,
                rejection_reason=reason,
                processed_by=admin_id,
                processed_at=self._clock(),
            )
            await self._release_hold(
                session,
                withdrawal,
                description="Refund for rejected withdrawal",
                reason=reason,
            )

        self._logger.info(
            "withdrawal_rejected",
            withdrawal_id=str(withdrawal_id),
            admin_id=str(admin_id),
            points_refunded=withdrawal.points_held,
        )
        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        await self._emit(
            NotificationKind.WITHDRAWAL_REJECTED,
            withdrawal,
            title="Withdrawal Rejected",
            message=(
                f"Your withdrawal of ${format_money(withdrawal.amount)} was "
                f"rejected: {reason}. The points have been returned to your balance."
            ),
        )
        return withdrawal

    async def cancel(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        *,
        account_id: uuid.UUID | None = None,
    ) -> Withdrawal:
        """Withdraw a pending request; ``account_id`` of ``None`` means the system."""

        withdrawal = await self.get_withdrawal(
            session, withdrawal_id, account_id=account_id
        )
        async with account_unit_of_work(session, withdrawal.account_id):
            await self._compare_and_set(
                session,
                withdrawal_id,
                source=(WithdrawalStatus.PENDING,),
                target=WithdrawalStatus.CANCELLED,
                processed_at=self._clock(),
            )
            await self._release_hold(
                session, withdrawal, description="Refund for cancelled withdrawal"
            )

        self._logger.info(
            "withdrawal_cancelled",
            withdrawal_id=str(withdrawal_id),
            account_id=str(withdrawal.account_id),
            by_owner=account_id is not None,
        )
        withdrawal = await self.get_withdrawal(session, withdrawal_id)
        await self._emit(
            NotificationKind.WITHDRAWAL_CANCELLED,
            withdrawal,
            title="Withdrawal Cancelled",
            message=(
                f"Your withdrawal of ${format_money(withdrawal.amount)} was "
                "cancelled and the points have been returned to your balance."
            ),
        )
        return withdrawal

    async def apply_action(
        self,
        session: AsyncSession,
        withdrawal_id: uuid.UUID,
        action: WithdrawalAction,
        *,
        admin_id: uuid.UUID,
        payout_reference: str | None = None,
        rejection_reason: str | None = None,
    ) -> Withdrawal:
        if action is WithdrawalAction.APPROVE:
            return await self.approve(
                session,
                withdrawal_id,
                admin_id=admin_id,
                payout_reference=payout_reference,
            )
        if action is WithdrawalAction.REJECT:
            return await self.reject(
                session, withdrawal_id, admin_id=admin_id, reason=rejection_reason
            )
        return await self.mark_processing(session, withdrawal_id, admin_id=admin_id)

    async def list_for_account(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        pagination: PaginationParams,
        status: WithdrawalStatus | None = None,
    ) -> WithdrawalPage:
        stmt = select(Withdrawal).where(Withdrawal.account_id == account_id)
        if status is not None:
            stmt = stmt.where(Withdrawal.status == status)
        stmt = stmt.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
        items, total = await paginate_query(session, stmt, pagination)

        summary = WithdrawalSummary()
        totals_stmt = (
            select(
                Withdrawal.status,
                func.count(),
                func.coalesce(func.sum(Withdrawal.amount), 0),
            )
            .where(Withdrawal.account_id == account_id)
            .group_by(Withdrawal.status)
        )
        for row_status, count, amount in await session.execute(totals_stmt):
            bucket = {
                WithdrawalStatus.PENDING: summary.pending,
                WithdrawalStatus.PROCESSING: summary.pending,
                WithdrawalStatus.COMPLETED: summary.completed,
                WithdrawalStatus.REJECTED: summary.rejected,
                WithdrawalStatus.CANCELLED: summary.rejected,
            }[row_status]
            bucket.add(Decimal(str(amount)), int(count))

        return WithdrawalPage(items=items, total=total, summary=summary)

    async def list_all(
        self,
        session: AsyncSession,
        *,
        pagination: PaginationParams,
        status: WithdrawalStatus | None = None,
        account_id: uuid.UUID | None = None,
    ) -> AdminWithdrawalPage:
        stmt = select(Withdrawal)
        if status is not None:
            stmt = stmt.where(Withdrawal.status == status)
        if account_id is not None:
            stmt = stmt.where(Withdrawal.account_id == account_id)
        stmt = stmt.order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())
        items, total = await paginate_query(session, stmt, pagination)

        counts = {item: 0 for item in WithdrawalStatus}
        counts_stmt = select(Withdrawal.status, func.count()).group_by(
            Withdrawal.status
        )
        for row_status, count in await session.execute(counts_stmt):
            counts[row_status] = int(count)

        return AdminWithdrawalPage(items=items, total=total, counts=counts)

    async def _emit(
        self,
        kind: NotificationKind,
        withdrawal: Withdrawal,
        *,
        title: str,
        message: str,
    ) -> None:
        event = NotificationEvent(
            kind=kind,
            account_id=withdrawal.account_id,
            title=title,
            message=message,
            context={
                "withdrawalId": str(withdrawal.id),
                "amount": str(withdrawal.amount),
                "method": withdrawal.method.value,
                "status": withdrawal.status.value,
            },
        )
        await emit_safely(self._notifier, event, self._logger)
