from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import get_referral_service
from wallet_service.api.dependencies.users import require_admin
from wallet_service.api.errors import to_http_exception
from wallet_service.api.schemas.referrals import (
    ReferralLevelBody,
    ReferralLevelSchema,
    ReferralLevelsReplaceRequest,
)
from wallet_service.core.constants import API_PREFIX, MAX_REFERRAL_LEVELS
from wallet_service.core.exceptions import WalletError
from wallet_service.db.dependencies import get_db_session
from wallet_service.referrals.commission import LevelRule, make_commission
from wallet_service.referrals.models import ReferralLevel
from wallet_service.referrals.service import ReferralService, rule_from_row

router = APIRouter(prefix=f"{API_PREFIX}/admin/referral-levels", tags=["admin"])


def _to_schema(row: ReferralLevel) -> ReferralLevelSchema:
    return ReferralLevelSchema.from_rule(rule_from_row(row))


@router.get(
    "",
    response_model=list[ReferralLevelSchema],
    summary="List configured referral levels",
)
async def list_levels(
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
) -> list[ReferralLevelSchema]:
    return [_to_schema(row) for row in await service.list_levels(session)]


@router.put(
    "",
    response_model=list[ReferralLevelSchema],
    summary="Replace the whole referral level configuration",
)
async def replace_levels(
    payload: ReferralLevelsReplaceRequest,
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
) -> list[ReferralLevelSchema]:
    try:
        rows = await service.replace_levels(
            session, [level.to_rule() for level in payload.levels]
        )
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return [_to_schema(row) for row in rows]


@router.put(
    "/{level}",
    response_model=ReferralLevelSchema,
    summary="Create or update a single referral level",
)
async def upsert_level(
    payload: ReferralLevelBody,
    level: int = Path(..., ge=1, le=MAX_REFERRAL_LEVELS),
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
) -> ReferralLevelSchema:
    try:
        rule = LevelRule(
            level=level,
            commission=make_commission(
                payload.commission.type, payload.commission.value
            ),
            is_active=payload.is_active,
            description=payload.description,
        )
        row = await service.upsert_level(session, rule)
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return _to_schema(row)


@router.delete(
    "/{level}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Remove a referral level",
)
async def delete_level(
    level: int = Path(..., ge=1, le=MAX_REFERRAL_LEVELS),
    session: AsyncSession = Depends(get_db_session),
    _admin: Account = Depends(require_admin),
    service: ReferralService = Depends(get_referral_service),
) -> Response:
    try:
        await service.delete_level(session, level)
    except WalletError as exc:
        await session.rollback()
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
