from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

import structlog

from wallet_service.db.base import utcnow


class NotificationKind(StrEnum):
    WITHDRAWAL_SUBMITTED = "withdrawal_submitted"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"
    WITHDRAWAL_CANCELLED = "withdrawal_cancelled"
    REFERRAL_CREDITED = "referral_credited"


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    """Structured event handed to the notification delivery system."""

    kind: NotificationKind
    account_id: uuid.UUID
    title: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    occurred_at: dt.datetime = field(default_factory=utcnow)


class NotificationEmitter(Protocol):
    """Abstraction over whatever delivers notifications (in-app, email, push)."""

    async def emit(self, event: NotificationEvent) -> None:
        """Deliver ``event``; called only after the owning transaction commits."""


class LoggingNotificationEmitter:
    """Default emitter that logs events in lieu of an external integration."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    async def emit(self, event: NotificationEvent) -> None:
        self._logger.info(
            "notification_emitted",
            kind=event.kind.value,
            account_id=str(event.account_id),
            title=event.title,
            message=event.message,
            context=event.context,
        )


async def emit_safely(
    emitter: NotificationEmitter,
    event: NotificationEvent,
    logger: structlog.stdlib.BoundLogger,
) -> None:
    """Deliver ``event`` and log, rather than raise, any emitter failure."""

    try:
        await emitter.emit(event)
    except Exception:
        logger.exception(
            "notification_emit_failed",
            kind=event.kind.value,
            account_id=str(event.account_id),
        )
