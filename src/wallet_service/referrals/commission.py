"""Per-level commission rules as an explicit tagged union."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from wallet_service.core.constants import MAX_REFERRAL_LEVELS

from .enums import CommissionType
from .exceptions import InvalidReferralLevelError

_HUNDRED = Decimal("100")


@dataclass(frozen=True, slots=True)
class Percentage:
    """Share a percentage of the source earning, rounded down to whole points."""

    rate: Decimal

    @property
    def type(self) -> CommissionType:
        return CommissionType.PERCENTAGE

    @property
    def value(self) -> Decimal:
        return self.rate

    def share(self, points: int) -> int:
        raw = Decimal(points) * self.rate / _HUNDRED
        return int(raw.to_integral_value(rounding=ROUND_FLOOR))

    def label(self) -> str:
        return f"{self.rate.normalize():f}%"


@dataclass(frozen=True, slots=True)
class Flat:
    """Pay a fixed number of points regardless of the earning's size."""

    points: int

    @property
    def type(self) -> CommissionType:
        return CommissionType.FLAT

    @property
    def value(self) -> Decimal:
        return Decimal(self.points)

    def share(self, points: int) -> int:
        return self.points

    def label(self) -> str:
        return f"{self.points} points"


Commission = Percentage | Flat


@dataclass(frozen=True, slots=True)
class LevelRule:
    level: int
    commission: Commission
    is_active: bool = True
    description: str | None = None


def commission_from_columns(kind: CommissionType, value: Decimal) -> Commission:
    if kind is CommissionType.FLAT:
        return Flat(points=int(value))
    return Percentage(rate=Decimal(value))


def make_commission(kind: CommissionType | str, value: Decimal | int) -> Commission:
    """Build and range-check a commission from its external representation."""

    try:
        kind = CommissionType(str(kind).upper())
    except ValueError as exc:
        raise InvalidReferralLevelError(f"Unknown commission type: {kind}") from exc

    value = Decimal(str(value))
    if kind is CommissionType.PERCENTAGE:
        if value < 0 or value > _HUNDRED:
            raise InvalidReferralLevelError(
                "Percentage commission must be between 0 and 100"
            )
        return Percentage(rate=value)

    if value < 0 or value != value.to_integral_value():
        raise InvalidReferralLevelError(
            "Flat commission must be a non-negative whole number of points"
        )
    return Flat(points=int(value))


def validate_level(level: int) -> int:
    if level < 1 or level > MAX_REFERRAL_LEVELS:
        raise InvalidReferralLevelError(
            f"Referral level must be between 1 and {MAX_REFERRAL_LEVELS}"
        )
    return level


def validate_rules(rules: Iterable[LevelRule]) -> list[LevelRule]:
    ordered = sorted(rules, key=lambda rule: rule.level)
    seen: set[int] = set()
    for rule in ordered:
        validate_level(rule.level)
        if rule.level in seen:
            raise InvalidReferralLevelError(f"Duplicate referral level {rule.level}")
        seen.add(rule.level)
    return ordered
