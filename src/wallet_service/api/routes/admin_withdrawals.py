from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import get_withdrawal_service
from wallet_service.api.dependencies.users import require_admin
from wallet_service.api.errors import to_http_exception
from wallet_service.api.routes._pagination import get_pagination
from wallet_service.api.schemas.withdrawals import (
    AdminWithdrawalListResponse,
    WithdrawalActionRequest,
    WithdrawalResponse,
)
from wallet_service.core.constants import API_PREFIX
from wallet_service.core.exceptions import WalletError
from wallet_service.db.dependencies import get_db_session
from wallet_service.db.pagination import PaginationParams
from wallet_service.withdrawals.enums import WithdrawalStatus
from wallet_service.withdrawals.service import WithdrawalService

router = APIRouter(prefix=f"{API_PREFIX}/admin/withdrawals", tags=["admin"])


@router.get(
    "",
    response_model=AdminWithdrawalListResponse,
    summary="List withdrawals across all users",
)
async def list_withdrawals(
    status_filter: WithdrawalStatus | None = Query(default=None, alias="status"),
    account_id: uuid.UUID | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination),
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> AdminWithdrawalListResponse:
    page = await service.list_all(
        session, pagination=pagination, status=status_filter, account_id=account_id
    )
    return AdminWithdrawalListResponse(
        items=[WithdrawalResponse.model_validate(item) for item in page.items],
        total=page.total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=pagination.total_pages(page.total),
        counts=page.counts,
    )


@router.get(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Fetch any withdrawal",
)
async def get_withdrawal(
    withdrawal_id: uuid.UUID,
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalResponse:
    try:
        withdrawal = await service.get_withdrawal(session, withdrawal_id)
    except WalletError as exc:
        raise to_http_exception(exc) from exc
    return WithdrawalResponse.model_validate(withdrawal)


@router.patch(
    "/{withdrawal_id}",
    response_model=WithdrawalResponse,
    summary="Approve, reject or start processing a withdrawal",
)
async def update_withdrawal(
    withdrawal_id: uuid.UUID,
    payload: WithdrawalActionRequest,
    session: AsyncSession = Depends(get_db_session),
    admin: Account = Depends(require_admin),
    service: WithdrawalService = Depends(get_withdrawal_service),
) -> WithdrawalResponse:
    """Apply an admin decision; a withdrawal that is already closed yields 409."""

    try:
        withdrawal = await service.apply_action(
            session,
            withdrawal_id,
            payload.action,
            admin_id=admin.id,
            payout_reference=payload.transaction_id,
            rejection_reason=payload.rejection_reason,
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return WithdrawalResponse.model_validate(withdrawal)
