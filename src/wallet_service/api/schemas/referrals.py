from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from wallet_service.core.constants import MAX_REFERRAL_LEVELS
from wallet_service.referrals.commission import LevelRule, make_commission
from wallet_service.referrals.enums import CommissionType


class CommissionSchema(BaseModel):
    """Tagged commission: ``value`` is a percentage rate or a number of points."""

    type: CommissionType
    value: Decimal = Field(..., ge=0)


class ReferralLevelSchema(BaseModel):
    level: int = Field(..., ge=1, le=MAX_REFERRAL_LEVELS)
    commission: CommissionSchema
    description: str | None = Field(default=None, max_length=255)
    is_active: bool = True

    def to_rule(self) -> LevelRule:
        return LevelRule(
            level=self.level,
            commission=make_commission(self.commission.type, self.commission.value),
            is_active=self.is_active,
            description=self.description,
        )

    @classmethod
    def from_rule(cls, rule: LevelRule) -> ReferralLevelSchema:
        return cls(
            level=rule.level,
            commission=CommissionSchema(
                type=rule.commission.type, value=rule.commission.value
            ),
            description=rule.description,
            is_active=rule.is_active,
        )


class ReferralLevelBody(BaseModel):
    """Body for saving a single level slot; the level comes from the path."""

    commission: CommissionSchema
    description: str | None = Field(default=None, max_length=255)
    is_active: bool = True


class ReferralLevelsReplaceRequest(BaseModel):
    levels: list[ReferralLevelSchema] = Field(
        ..., max_length=MAX_REFERRAL_LEVELS
    )


class ReferralEarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_id: uuid.UUID
    source_account_id: uuid.UUID
    source_event_id: str
    source_type: str
    level: int
    points: int
    amount: Decimal
    created_at: dt.datetime


class LevelEarningsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    points: int
    amount: Decimal
    count: int


class ReferralDashboardResponse(BaseModel):
    referral_code: str
    referral_link: str
    levels: list[ReferralLevelSchema]
    referrals_by_level: dict[int, int]
    total_referrals: int
    lifetime_points: int
    lifetime_amount: Decimal
    month_points: int
    month_amount: Decimal
    earnings_by_level: dict[int, LevelEarningsResponse]
    recent: list[ReferralEarningResponse]
