from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.core.exceptions import PersistenceFailureError, ValidationError
from wallet_service.ledger.enums import TransactionType
from wallet_service.ledger.locks import account_unit_of_work
from wallet_service.ledger.models import Transaction
from wallet_service.ledger.service import LedgerService
from wallet_service.referrals.models import ReferralEarning
from wallet_service.referrals.service import ReferralService

from .models import EarningEvent

_INTAKE_TYPES = (TransactionType.TASK_REWARD, TransactionType.BONUS)


@dataclass(slots=True)
class EarningResult:
    transaction: Transaction
    created: bool
    commissions: list[ReferralEarning] = field(default_factory=list)


class EarningsService:
    """Entry point for earnings reported by upstream reward systems.

    The earner's credit is idempotent on ``(source_type, source_event_id)``.
    The referral fan-out runs on every call, so a replay completes any
    commission levels a previous attempt did not reach.
    """

    def __init__(self, ledger: LedgerService, referrals: ReferralService) -> None:
        self._ledger = ledger
        self._referrals = referrals
        self._logger = structlog.get_logger(__name__)

    async def _find_event(
        self, session: AsyncSession, source_type: str, source_event_id: str
    ) -> EarningEvent | None:
        stmt = select(EarningEvent).where(
            EarningEvent.source_type == source_type,
            EarningEvent.source_event_id == source_event_id,
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def record_earning(
        self,
        session: AsyncSession,
        account_id: uuid.UUID,
        *,
        points: int,
        source_type: str,
        source_event_id: str,
        description: str | None = None,
        type: TransactionType = TransactionType.TASK_REWARD,
    ) -> EarningResult:
        if points <= 0:
            raise ValidationError("Earned points must be positive")
        if type not in _INTAKE_TYPES:
            raise ValidationError(f"Unsupported earning type: {type.value}")
        source_type = source_type.strip().upper()
        source_event_id = source_event_id.strip()
        if not source_type or not source_event_id:
            raise ValidationError("Source type and source event id are required")

        event: EarningEvent | None = None
        created = False
        try:
            async with account_unit_of_work(session, account_id):
                event = await self._find_event(session, source_type, source_event_id)
                if event is None:
                    transaction = await self._ledger.record_entry(
                        session,
                        account_id,
                        points=points,
                        type=type,
                        description=description
                        or f"{source_type.title()} reward ({source_event_id})",
                        reference=f"{source_type.lower()}_{source_event_id}",
                        metadata={
                            "sourceType": source_type,
                            "sourceEventId": source_event_id,
                        },
                    )
                    event = EarningEvent(
                        account_id=account_id,
                        source_type=source_type,
                        source_event_id=source_event_id,
                        points=points,
                        transaction_id=transaction.id,
                    )
                    session.add(event)
                    await session.flush()
                    created = True
        except PersistenceFailureError as exc:
            if not isinstance(exc.__cause__, IntegrityError):
                raise
            event = await self._find_event(session, source_type, source_event_id)
            if event is None:
                raise

        if event.account_id != account_id:
            raise ValidationError("Source event was already recorded for another account")

        transaction = await session.get(Transaction, event.transaction_id)
        if transaction is None:
            raise PersistenceFailureError()

        if created:
            self._logger.info(
                "earning_recorded",
                account_id=str(account_id),
                source_type=source_type,
                source_event_id=source_event_id,
                points=points,
            )
        else:
            self._logger.info(
                "earning_replayed",
                account_id=str(account_id),
                source_type=source_type,
                source_event_id=source_event_id,
            )

        commissions = await self._referrals.distribute_commissions(
            session,
            source_account_id=account_id,
            points=event.points,
            source_event_id=source_event_id,
            source_type=source_type,
        )
        return EarningResult(
            transaction=transaction, created=created, commissions=commissions
        )
