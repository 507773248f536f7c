from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import (
    get_earnings_service,
    get_ledger_service,
)
from wallet_service.api.dependencies.users import require_admin
from wallet_service.api.errors import to_http_exception
from wallet_service.api.schemas.ledger import (
    AccountOpenRequest,
    AccountResponse,
    AdjustmentRequest,
    EarningRequest,
    EarningResponse,
    ReconciliationResponse,
    TransactionResponse,
)
from wallet_service.api.schemas.referrals import ReferralEarningResponse
from wallet_service.core.constants import API_PREFIX
from wallet_service.core.exceptions import WalletError
from wallet_service.db.dependencies import get_db_session
from wallet_service.earnings.service import EarningsService
from wallet_service.ledger.service import LedgerService

router = APIRouter(prefix=f"{API_PREFIX}/admin", tags=["admin"])


@router.post(
    "/accounts",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a wallet account",
)
async def open_account(
    payload: AccountOpenRequest,
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    ledger: LedgerService = Depends(get_ledger_service),
) -> AccountResponse:
    try:
        account = await ledger.open_account(
            session,
            payload.account_id,
            referral_code=payload.referral_code,
            package_tier=payload.package_tier,
            kyc_status=payload.kyc_status,
            role=payload.role,
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return AccountResponse.model_validate(account)


@router.post(
    "/accounts/{account_id}/adjust",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a balance adjustment",
)
async def adjust_balance(
    account_id: uuid.UUID,
    payload: AdjustmentRequest,
    session: AsyncSession = Depends(get_db_session),
    admin: Account = Depends(require_admin),
    ledger: LedgerService = Depends(get_ledger_service),
) -> TransactionResponse:
    try:
        transaction = await ledger.adjust(
            session,
            account_id,
            points=payload.points,
            amount=payload.amount,
            reason=payload.reason,
            actor_id=admin.id,
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return TransactionResponse.model_validate(transaction)


@router.get(
    "/accounts/{account_id}/reconcile",
    response_model=ReconciliationResponse,
    summary="Compare stored balances with the transaction log",
)
async def reconcile_account(
    account_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    ledger: LedgerService = Depends(get_ledger_service),
) -> ReconciliationResponse:
    try:
        report = await ledger.reconcile(session, account_id)
    except WalletError as exc:
        raise to_http_exception(exc) from exc
    return ReconciliationResponse.model_validate(report)


@router.post(
    "/earnings",
    response_model=EarningResponse,
    summary="Record an approved earning and pay referral commissions",
)
async def record_earning(
    payload: EarningRequest,
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: EarningsService = Depends(get_earnings_service),
) -> EarningResponse:
    """Credit the earner once per source event; replays only resume the fan-out."""

    try:
        result = await service.record_earning(
            session,
            payload.account_id,
            points=payload.points,
            source_type=payload.source_type,
            source_event_id=payload.source_event_id,
            description=payload.description,
            type=payload.type,
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return EarningResponse(
        transaction=TransactionResponse.model_validate(result.transaction),
        created=result.created,
        commissions=[
            ReferralEarningResponse.model_validate(item) for item in result.commissions
        ],
    )
