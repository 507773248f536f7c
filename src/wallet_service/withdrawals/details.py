"""Payout destination details, one shape per payment rail."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .enums import PaymentMethod
from .exceptions import InvalidAccountDetailsError

_MOBILE_WALLET_NUMBER = r"^\+?[0-9]{10,15}$"


class _Details(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)

    account_name: str | None = Field(default=None, max_length=120)


class MobileWalletDetails(_Details):
    """bKash, Nagad and Rocket payouts go to a registered mobile number."""

    method: Literal["BKASH", "NAGAD", "ROCKET"]
    account_number: str = Field(..., pattern=_MOBILE_WALLET_NUMBER)


class BinanceDetails(_Details):
    method: Literal["BINANCE"]
    pay_id: str = Field(..., min_length=4, max_length=64)


class PayPalDetails(_Details):
    method: Literal["PAYPAL"]
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)


AccountDetails = Annotated[
    MobileWalletDetails | BinanceDetails | PayPalDetails,
    Field(discriminator="method"),
]

_ADAPTER: TypeAdapter[MobileWalletDetails | BinanceDetails | PayPalDetails] = (
    TypeAdapter(AccountDetails)
)


def parse_account_details(
    method: PaymentMethod, raw: dict[str, Any] | None
) -> MobileWalletDetails | BinanceDetails | PayPalDetails:
    """Validate ``raw`` against the shape required by ``method``."""

    if not raw:
        raise InvalidAccountDetailsError()

    payload = {**raw, "method": method.value}
    try:
        return _ADAPTER.validate_python(payload)
    except PydanticValidationError as exc:
        fields = sorted(
            {str(error["loc"][-1]) for error in exc.errors() if error.get("loc")}
        )
        raise InvalidAccountDetailsError(
            f"Invalid account details for {method.value}: {', '.join(fields)}"
        ) from exc
