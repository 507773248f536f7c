from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_service.accounts.models import Account
from wallet_service.api.dependencies.services import get_referral_service
from wallet_service.api.dependencies.users import get_current_account
from wallet_service.api.schemas.referrals import (
    LevelEarningsResponse,
    ReferralDashboardResponse,
    ReferralEarningResponse,
    ReferralLevelSchema,
)
from wallet_service.core.constants import API_PREFIX
from wallet_service.db.dependencies import get_db_session
from wallet_service.referrals.service import ReferralService

router = APIRouter(prefix=f"{API_PREFIX}/referrals", tags=["referrals"])


@router.get(
    "",
    response_model=ReferralDashboardResponse,
    summary="Referral dashboard for the current user",
)
async def get_referral_dashboard(
    session: AsyncSession = Depends(get_db_session),
    current_account: Account = Depends(get_current_account),
    service: ReferralService = Depends(get_referral_service),
) -> ReferralDashboardResponse:
    """Referral link, per-level rates, team size and commission earnings."""

    dashboard = await service.dashboard(session, current_account.id)
    return ReferralDashboardResponse(
        referral_code=dashboard.referral_code,
        referral_link=dashboard.referral_link,
        levels=[ReferralLevelSchema.from_rule(rule) for rule in dashboard.levels],
        referrals_by_level=dashboard.referrals_by_level,
        total_referrals=dashboard.total_referrals,
        lifetime_points=dashboard.lifetime_points,
        lifetime_amount=dashboard.lifetime_amount,
        month_points=dashboard.month_points,
        month_amount=dashboard.month_amount,
        earnings_by_level={
            level: LevelEarningsResponse.model_validate(item)
            for level, item in dashboard.earnings_by_level.items()
        },
        recent=[ReferralEarningResponse.model_validate(item) for item in dashboard.recent],
    )
