"""Sentry error tracking integration."""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations import Integration as SentryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from wallet_service.core.config import SentrySettings
from wallet_service.core.exceptions import PersistenceFailureError, WalletError

logger = structlog.get_logger(__name__)


def configure_sentry(
    settings: SentrySettings, *, environment: str, release: str
) -> bool:
    """Initialise the Sentry SDK; a no-op unless enabled with a DSN."""

    if not settings.enabled or settings.dsn is None:
        return False

    integrations: list[SentryIntegration] = [
        StarletteIntegration(),
        FastApiIntegration(),
        SqlalchemyIntegration(),
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
    ]

    sentry_sdk.init(
        dsn=settings.dsn.get_secret_value(),
        environment=settings.environment or environment,
        release=settings.release or release,
        sample_rate=settings.sample_rate,
        traces_sample_rate=settings.traces_sample_rate,
        send_default_pii=settings.send_default_pii,
        debug=settings.debug,
        integrations=integrations,
        before_send=_before_send,
    )
    logger.info("sentry_configured", environment=settings.environment or environment)
    return True


def _before_send(
    event: dict[str, Any],
    hint: dict[str, Any] | None,
) -> dict[str, Any] | None:
    """Drop business-rule rejections; only storage and unexpected errors matter."""

    exc_info = (hint or {}).get("exc_info")
    if exc_info:
        error = exc_info[1]
        if isinstance(error, WalletError) and not isinstance(
            error, PersistenceFailureError
        ):
            return None

    if event.get("request", {}).get("url", "").endswith("/health"):
        return None
    return event


def capture_exception(exception: BaseException, **extra_context: Any) -> None:
    """Report ``exception`` with extra context; does nothing when Sentry is off."""

    with sentry_sdk.new_scope() as scope:
        for key, value in extra_context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
