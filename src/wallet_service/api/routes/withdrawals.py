from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import get_withdrawal_service
from wallet_service.api.dependencies.users import get_current_account
from wallet_service.api.errors import to_http_exception
from wallet_service.api.routes._pagination import get_pagination
from wallet_service.api.schemas.withdrawals import (
    StatusTotalsResponse,
    WithdrawalCreatedResponse,
    WithdrawalCreateRequest,
    WithdrawalListResponse,
    WithdrawalResponse,
    WithdrawalSummaryResponse,
)
from wallet_service.core.constants import API_PREFIX
from wallet_service.core.exceptions import WalletError
from wallet_service.db.dependencies import get_db_session
from wallet_service.db.pagination import PaginationParams
from wallet_service.withdrawals.enums import WithdrawalStatus
from wallet_service.withdrawals.service import WithdrawalService

router = APIRouter(prefix=f"{API_PREFIX}/withdrawals", tags=["withdrawals"])


@router.post(
    "",
    response_model=WithdrawalCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal",
)
async def create_withdrawal(
    payload: WithdrawalCreateRequest,
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalCreatedResponse:
    """Validate the request and hold the required points until an admin decides."""

    try:
        receipt = await service.create_withdrawal(
            session,
            current_account.id,
            amount=payload.amount,
            method=payload.method,
            account_details=payload.account_details,
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc

    return WithdrawalCreatedResponse(
        withdrawal=WithdrawalResponse.model_validate(receipt.withdrawal),
        fee=receipt.quote.fee,
        net_amount=receipt.quote.net_amount,
        status=receipt.withdrawal.status,
        estimated_processing_time=receipt.estimated_processing_time,
    )


@router.get(
    "",
    response_model=WithdrawalListResponse,
    summary="List the current user's withdrawals",
)
async def list_withdrawals(
    status_filter: WithdrawalStatus | None = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination),
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalListResponse:
    page = await service.list_for_account(
        session, current_account.id, pagination=pagination, status=status_filter
    )
    summary = page.summary
    return WithdrawalListResponse(
        items=[WithdrawalResponse.model_validate(item) for item in page.items],
        total=page.total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=pagination.total_pages(page.total),
        summary=WithdrawalSummaryResponse(
            pending=StatusTotalsResponse.model_validate(summary.pending),
            completed=StatusTotalsResponse.model_validate(summary.completed),
            rejected=StatusTotalsResponse.model_validate(summary.rejected),
        ),
    )


@router.get(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Fetch one of the current user's withdrawals",
)
async def get_withdrawal(
    withdrawal_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalResponse:
    try:
        withdrawal = await service.get_withdrawal(
            session, withdrawal_id, account_id=current_account.id
        )
    except WalletError as exc:
        raise to_http_exception(exc) from exc
    return WithdrawalResponse.model_validate(withdrawal)


@router.post(
    "/{withdrawal_id}/cancel",
    response_model=WithdrawalResponse,
    summary="Cancel a pending withdrawal",
)
async def cancel_withdrawal(
    withdrawal_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalResponse:
    """Cancel a request that no admin has picked up yet and release its points."""

    try:
        withdrawal = await service.cancel(
            session, withdrawal_id, account_id=current_account.id
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return WithdrawalResponse.model_validate(withdrawal)
