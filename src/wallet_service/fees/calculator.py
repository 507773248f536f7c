"""Withdrawal fee and minimum-amount rules.

Everything here is a pure function of its arguments so the rules can be
exercised without a database.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from wallet_service.core.config import MethodFeeSchedule
from wallet_service.core.constants import CENT
from wallet_service.withdrawals.enums import PaymentMethod
from wallet_service.withdrawals.exceptions import (
    BelowMinimumError,
    InvalidAmountError,
    UnsupportedMethodError,
)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class PackageTerms:
    """Withdrawal terms granted by an account's package tier."""

    tier: str | None
    name: str | None
    min_withdrawal: Decimal
    fee_discount: Decimal = _ZERO


@dataclass(frozen=True, slots=True)
class FeeQuote:
    method: PaymentMethod
    amount: Decimal
    effective_percentage: Decimal
    fee: Decimal
    net_amount: Decimal


def format_money(value: Decimal) -> str:
    """Render an amount without trailing zeros, e.g. ``5`` or ``12.5``."""

    normalised = value.normalize()
    if normalised == normalised.to_integral_value():
        normalised = normalised.quantize(Decimal("1"))
    return f"{normalised:f}"


def resolve_method(
    method: PaymentMethod | str,
    schedules: Mapping[PaymentMethod, MethodFeeSchedule],
) -> tuple[PaymentMethod, MethodFeeSchedule]:
    try:
        resolved = PaymentMethod(str(method).upper())
    except ValueError as exc:
        raise UnsupportedMethodError() from exc

    schedule = schedules.get(resolved)
    if schedule is None:
        raise UnsupportedMethodError()
    return resolved, schedule


def effective_percentage(schedule: MethodFeeSchedule, terms: PackageTerms) -> Decimal:
    return max(_ZERO, schedule.percentage - terms.fee_discount)


def check_minimums(
    method: PaymentMethod,
    amount: Decimal,
    schedule: MethodFeeSchedule,
    terms: PackageTerms,
) -> None:
    """Apply the method minimum, then the package minimum."""

    if amount < schedule.minimum:
        raise BelowMinimumError(
            f"Minimum withdrawal for {method.value} is ${format_money(schedule.minimum)}",
            minimum=schedule.minimum,
        )
    if amount < terms.min_withdrawal:
        raise BelowMinimumError(
            "Minimum withdrawal for your package is "
            f"${format_money(terms.min_withdrawal)}",
            minimum=terms.min_withdrawal,
        )


def calculate_fee(
    method: PaymentMethod,
    amount: Decimal,
    schedule: MethodFeeSchedule,
    terms: PackageTerms,
) -> FeeQuote:
    """Return the fee and net payout for ``amount`` sent through ``method``."""

    if amount <= _ZERO:
        raise InvalidAmountError()

    percentage = effective_percentage(schedule, terms)
    fee = (amount * percentage / _HUNDRED + schedule.fixed).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    net_amount = (amount - fee).quantize(CENT, rounding=ROUND_HALF_UP)
    if net_amount <= _ZERO:
        raise InvalidAmountError("Withdrawal amount does not cover the fee")

    return FeeQuote(
        method=method,
        amount=amount,
        effective_percentage=percentage,
        fee=fee,
        net_amount=net_amount,
    )


def quote_withdrawal(
    method: PaymentMethod | str,
    amount: Decimal,
    terms: PackageTerms,
    schedules: Mapping[PaymentMethod, MethodFeeSchedule],
) -> FeeQuote:
    """Validate ``amount`` against both minimums and price the withdrawal."""

    if amount <= _ZERO:
        raise InvalidAmountError()
    resolved, schedule = resolve_method(method, schedules)
    check_minimums(resolved, amount, schedule, terms)
    return calculate_fee(resolved, amount, schedule, terms)
