from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import get_ledger_service
from wallet_service.api.dependencies.users import get_current_account
from wallet_service.api.routes._pagination import get_pagination
from wallet_service.api.schemas.ledger import (
    TransactionListResponse,
    TransactionResponse,
    TransactionSummaryResponse,
    WalletResponse,
)
from wallet_service.core.constants import API_PREFIX
from wallet_service.db.dependencies import get_db_session
from wallet_service.db.pagination import PaginationParams
from wallet_service.ledger.enums import TransactionStatus, TransactionType
from wallet_service.ledger.service import LedgerService

router = APIRouter(prefix=API_PREFIX, tags=["wallet"])


@router.get("/wallet", response_model=WalletResponse, summary="Wallet summary")
async def get_wallet(
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    ledger: LedgerService = Depends(get_ledger_service),
) -> WalletResponse:
    """Balances, held points, package terms and whether a withdrawal is possible."""

    summary = await ledger.wallet_summary(session, current_account.id)
    return WalletResponse.model_validate(summary)


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="Transaction history",
)
async def list_transactions(
    type_filter: TransactionType | None = Query(default=None, alias="type"),
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination),
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    ledger: LedgerService = Depends(get_ledger_service),
) -> TransactionListResponse:
    page = await ledger.list_transactions(
        session,
        current_account.id,
        pagination=pagination,
        type=type_filter,
        status=status_filter,
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(item) for item in page.items],
        total=page.total,
        page=pagination.page,
        page_size=pagination.page_size,
        total_pages=pagination.total_pages(page.total),
        summary=TransactionSummaryResponse.model_validate(page.summary),
    )
