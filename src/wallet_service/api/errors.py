"""Translation of domain errors into HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import HTTPException, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import SQLAlchemyError

from wallet_service.core.exceptions import (
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceFailureError,
    ValidationError,
    WalletError,
)
from wallet_service.core.logging import get_request_id
from wallet_service.observability import capture_exception
from wallet_service.referrals.exceptions import ReferralCycleError
from wallet_service.withdrawals.exceptions import CooldownActiveError, KycRequiredError

logger = structlog.get_logger(__name__)

INTERNAL_ERROR_DETAIL = "Internal server error"

_STATUS_BY_ERROR: tuple[tuple[type[WalletError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientBalanceError, status.HTTP_400_BAD_REQUEST),
    (KycRequiredError, status.HTTP_400_BAD_REQUEST),
    (CooldownActiveError, status.HTTP_400_BAD_REQUEST),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


def to_http_exception(exc: WalletError) -> HTTPException:
    """Map a domain error onto the HTTP status clients expect for it."""

    if isinstance(exc, (PersistenceFailureError, ReferralCycleError)):
        logger.error(
            "wallet_operation_failed",
            error_type=type(exc).__name__,
            error=str(exc.__cause__ or exc),
        )
        capture_exception(exc)
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=INTERNAL_ERROR_DETAIL,
        )

    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            headers = None
            if isinstance(exc, CooldownActiveError):
                headers = {"Retry-After": str(exc.remaining_hours * 3600)}
            return HTTPException(
                status_code=status_code, detail=exc.message, headers=headers
            )

    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message
    )


async def database_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Last-resort handler for storage errors that escaped a unit of work."""

    logger.error(
        "database_error",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    capture_exception(exc, request_id=get_request_id())
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": INTERNAL_ERROR_DETAIL},
    )


EXCEPTION_HANDLERS = {SQLAlchemyError: database_error_handler}
