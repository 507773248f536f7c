from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.core.config import ReferralSettings
from wallet_service.core.constants import CENT
from wallet_service.core.exceptions import PersistenceFailureError
from wallet_service.db.base import utcnow
from wallet_service.ledger.enums import TransactionType
from wallet_service.ledger.locks import account_unit_of_work
from wallet_service.ledger.service import Clock, LedgerService
from wallet_service.notifications.emitter import (
    NotificationEmitter,
    NotificationEvent,
    NotificationKind,
    emit_safely,
)

from .commission import (
    LevelRule,
    commission_from_columns,
    validate_level,
    validate_rules,
)
from .exceptions import ReferralCycleError, ReferralLevelNotFoundError
from .models import ReferralEarning, ReferralLevel


@dataclass(slots=True)
class LevelEarnings:
    points: int = 0
    amount: Decimal = Decimal("0.00")
    count: int = 0


@dataclass(slots=True)
class ReferralDashboard:
    referral_code: str
    referral_link: str
    levels: list[LevelRule]
    referrals_by_level: dict[int, int]
    total_referrals: int
    lifetime_points: int
    lifetime_amount: Decimal
    month_points: int
    month_amount: Decimal
    earnings_by_level: dict[int, LevelEarnings] = field(default_factory=dict)
    recent: list[ReferralEarning] = field(default_factory=list)


def rule_from_row(row: ReferralLevel) -> LevelRule:
    return LevelRule(
        level=row.level,
        commission=commission_from_columns(row.commission_type, row.commission_value),
        is_active=row.is_active,
        description=row.description,
    )


class ReferralService:
    """Multi-level commission fan-out and referral level configuration."""

    def __init__(
        self,
        settings: ReferralSettings,
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

    async def list_levels(self, session: AsyncSession) -> list[ReferralLevel]:
        stmt = select(ReferralLevel).order_by(ReferralLevel.level)
        return list((await session.execute(stmt)).scalars().all())

    async def effective_rules(self, session: AsyncSession) -> list[LevelRule]:
        """Configured rules, or the fallback schedule when none exist."""

        rows = await self.list_levels(session)
        if rows:
            return [rule_from_row(row) for row in rows]
        return [
            LevelRule(
                level=fallback.level,
                commission=commission_from_columns(
                    fallback.commission_type, fallback.commission_value
                ),
            )
            for fallback in self._settings.fallback_levels
        ]

    async def distribute_commissions(
        self,
        session: AsyncSession,
        *,
        source_account_id: uuid.UUID,
        points: int,
        source_event_id: str,
        source_type: str,
    ) -> list[ReferralEarning]:
        """Pay each ancestor its level's share of ``points``.

        Each level commits on its own and is keyed by the source event, so a
        replay skips levels already paid and resumes where a failed run
        stopped. Returns the earnings created by this call.
        """

        if points <= 0:
            return []

        rules = await self.effective_rules(session)
        by_level = {rule.level: rule for rule in rules}
        depth = min(self._settings.max_depth, len(rules))

        visited = {source_account_id}
        current = source_account_id
        created: list[ReferralEarning] = []

        for level in range(1, depth + 1):
            ancestor_id = await session.scalar(
                select(Account.referred_by_id).where(Account.id == current)
            )
            if ancestor_id is None:
                break
            if ancestor_id in visited:
                self._logger.error(
                    "referral_cycle_detected",
                    source_account_id=str(source_account_id),
                    ancestor_id=str(ancestor_id),
                    level=level,
                )
                raise ReferralCycleError()
            visited.add(ancestor_id)
            current = ancestor_id

            rule = by_level.get(level)
            if rule is None or not rule.is_active:
                continue

            share = rule.commission.share(points)
            if share <= 0:
                continue

            earning = await self._credit_level(
                session,
                ancestor_id=ancestor_id,
                rule=rule,
                share=share,
                source_account_id=source_account_id,
                source_event_id=source_event_id,
                source_type=source_type,
            )
            if earning is not None:
                created.append(earning)
                await self._notify_credit(earning, rule)

        return created

    async def _credit_level(
        self,
        session: AsyncSession,
        *,
        ancestor_id: uuid.UUID,
        rule: LevelRule,
        share: int,
        source_account_id: uuid.UUID,
        source_event_id: str,
        source_type: str,
    ) -> ReferralEarning | None:
        try:
            async with account_unit_of_work(session, ancestor_id):
                existing = await session.scalar(
                    select(ReferralEarning.id).where(
                        ReferralEarning.source_type == source_type,
                        ReferralEarning.source_event_id == source_event_id,
                        ReferralEarning.level == rule.level,
                    )
                )
                if existing is not None:
                    return None

                transaction = await self._ledger.record_entry(
                    session,
                    ancestor_id,
                    points=share,
                    type=TransactionType.REFERRAL_BONUS,
                    description=(
                        f"Level {rule.level} referral commission "
                        f"({rule.commission.label()})"
                    ),
                    reference=f"referral_{source_account_id}_{source_event_id}",
                    metadata={
                        "referredUserId": str(source_account_id),
                        "sourceEventId": source_event_id,
                        "sourceType": source_type,
                        "level": rule.level,
                        "commissionType": rule.commission.type.value,
                        "commissionValue": str(rule.commission.value),
                    },
                )
                earning = ReferralEarning(
                    account_id=ancestor_id,
                    source_account_id=source_account_id,
                    source_event_id=source_event_id,
                    source_type=source_type,
                    level=rule.level,
                    points=share,
                    amount=self._ledger.points_to_currency(share),
                    transaction_id=transaction.id,
                    created_at=self._clock(),
                )
                session.add(earning)
                await session.flush()
        except PersistenceFailureError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                self._logger.info(
                    "referral_level_already_credited",
                    source_event_id=source_event_id,
                    level=rule.level,
                )
                return None
            raise

        self._logger.info(
            "referral_commission_credited",
            account_id=str(ancestor_id),
            source_account_id=str(source_account_id),
            source_event_id=source_event_id,
            level=rule.level,
            points=share,
        )
        return earning

    async def _notify_credit(self, earning: ReferralEarning, rule: LevelRule) -> None:
        event = NotificationEvent(
            kind=NotificationKind.REFERRAL_CREDITED,
            account_id=earning.account_id,
            title="Referral Commission!",
            message=(
                f"You earned {earning.points} points from your level "
                f"{earning.level} referral's activity!"
            ),
            context={
                "commission": earning.points,
                "level": earning.level,
                "referredUserId": str(earning.source_account_id),
                "commissionType": rule.commission.type.value,
                "commissionValue": str(rule.commission.value),
            },
        )
        await emit_safely(self._notifier, event, self._logger)

    async def replace_levels(
        self, session: AsyncSession, rules: Iterable[LevelRule]
    ) -> list[ReferralLevel]:
        ordered = validate_rules(rules)
        try:
            await session.execute(delete(ReferralLevel))
            for rule in ordered:
                session.add(self._row_for(rule))
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceFailureError() from exc

        self._logger.info("referral_levels_replaced", levels=[r.level for r in ordered])
        return await self.list_levels(session)

    async def upsert_level(self, session: AsyncSession, rule: LevelRule) -> ReferralLevel:
        validate_level(rule.level)
        row = await session.get(ReferralLevel, rule.level)
        if row is None:
            row = self._row_for(rule)
            session.add(row)
        else:
            row.commission_type = rule.commission.type
            row.commission_value = rule.commission.value
            row.description = rule.description
            row.is_active = rule.is_active
            row.updated_at = self._clock()
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceFailureError() from exc

        self._logger.info(
            "referral_level_saved",
            level=rule.level,
            commission_type=rule.commission.type.value,
            commission_value=str(rule.commission.value),
            is_active=rule.is_active,
        )
        return row

    async def delete_level(self, session: AsyncSession, level: int) -> None:
        row = await session.get(ReferralLevel, validate_level(level))
        if row is None:
            raise ReferralLevelNotFoundError()
        try:
            await session.delete(row)
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceFailureError() from exc
        self._logger.info("referral_level_deleted", level=level)

    def _row_for(self, rule: LevelRule) -> ReferralLevel:
        return ReferralLevel(
            level=rule.level,
            commission_type=rule.commission.type,
            commission_value=rule.commission.value,
            description=rule.description,
            is_active=rule.is_active,
        )

    async def _descendant_counts(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> dict[int, int]:
        counts: dict[int, int] = {}
        frontier = [account_id]
        for level in range(1, self._settings.dashboard_depth + 1):
            if frontier:
                stmt = select(Account.id).where(Account.referred_by_id.in_(frontier))
                frontier = list((await session.execute(stmt)).scalars().all())
            counts[level] = len(frontier)
        return counts

    def referral_link(self, referral_code: str) -> str:
        base = self._settings.base_url.rstrip("/")
        return f"{base}{self._settings.signup_path}?ref={referral_code}"

    async def dashboard(
        self, session: AsyncSession, account_id: uuid.UUID
    ) -> ReferralDashboard:
        account = await self._ledger.get_account(session, account_id)
        referrals_by_level = await self._descendant_counts(session, account_id)

        by_level_stmt = (
            select(
                ReferralEarning.level,
                func.count(),
                func.coalesce(func.sum(ReferralEarning.points), 0),
                func.coalesce(func.sum(ReferralEarning.amount), 0),
            )
            .where(ReferralEarning.account_id == account_id)
            .group_by(ReferralEarning.level)
        )
        earnings_by_level: dict[int, LevelEarnings] = {}
        for level, count, points, amount in await session.execute(by_level_stmt):
            earnings_by_level[int(level)] = LevelEarnings(
                points=int(points),
                amount=Decimal(str(amount)).quantize(CENT),
                count=int(count),
            )

        month_start = self._clock().replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        month_stmt = select(
            func.coalesce(func.sum(ReferralEarning.points), 0),
            func.coalesce(func.sum(ReferralEarning.amount), 0),
        ).where(
            ReferralEarning.account_id == account_id,
            ReferralEarning.created_at >= month_start,
        )
        month_points, month_amount = (await session.execute(month_stmt)).one()

        recent_stmt = (
            select(ReferralEarning)
            .where(ReferralEarning.account_id == account_id)
            .order_by(ReferralEarning.created_at.desc(), ReferralEarning.id.desc())
            .limit(self._settings.recent_activity_limit)
        )
        recent = list((await session.execute(recent_stmt)).scalars().all())

        return ReferralDashboard(
            referral_code=account.referral_code,
            referral_link=self.referral_link(account.referral_code),
            levels=await self.effective_rules(session),
            referrals_by_level=referrals_by_level,
            total_referrals=referrals_by_level.get(1, 0),
            lifetime_points=sum(item.points for item in earnings_by_level.values()),
            lifetime_amount=sum(
                (item.amount for item in earnings_by_level.values()),
                Decimal("0.00"),
            ),
            month_points=int(month_points),
            month_amount=Decimal(str(month_amount)).quantize(CENT),
            earnings_by_level=earnings_by_level,
            recent=recent,
        )
