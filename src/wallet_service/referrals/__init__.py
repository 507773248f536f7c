"""Multi-level referral commission domain package."""

from .enums import CommissionType
from .models import ReferralEarning, ReferralLevel

__all__ = ["CommissionType", "ReferralEarning", "ReferralLevel"]
