from __future__ import annotations

from enum import StrEnum


class CommissionType(StrEnum):
    """How a referral level's share of an earning is computed."""

    PERCENTAGE = "PERCENTAGE"
    FLAT = "FLAT"
