"""Tests for Sentry integration."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import Mock, patch

from pydantic import SecretStr

from wallet_service.core.config import SentrySettings
from wallet_service.core.exceptions import (
    InsufficientBalanceError,
    PersistenceFailureError,
)
from wallet_service.observability import capture_exception, configure_sentry
from wallet_service.observability.sentry import _before_send


@patch("sentry_sdk.init")
def test_configure_sentry_disabled(mock_init: Mock) -> None:
    settings = SentrySettings()
    settings.enabled = False
    settings.dsn = SecretStr("https://test@sentry.io/123")

    assert configure_sentry(settings, environment="test", release="0.1.0") is False
    mock_init.assert_not_called()


@patch("sentry_sdk.init")
def test_configure_sentry_no_dsn(mock_init: Mock) -> None:
    settings = SentrySettings()
    settings.enabled = True
    settings.dsn = None

    assert configure_sentry(settings, environment="test", release="0.1.0") is False
    mock_init.assert_not_called()


@patch("sentry_sdk.init")
def test_configure_sentry_enabled(mock_init: Mock) -> None:
    settings = SentrySettings()
    settings.enabled = True
    settings.dsn = SecretStr("https://test@sentry.io/123")
    settings.sample_rate = 0.5
    settings.traces_sample_rate = 0.2

    assert configure_sentry(settings, environment="staging", release="1.2.3") is True

    mock_init.assert_called_once()
    kwargs = mock_init.call_args.kwargs
    assert kwargs["dsn"] == "https://test@sentry.io/123"
    assert kwargs["environment"] == "staging"
    assert kwargs["release"] == "1.2.3"
    assert kwargs["sample_rate"] == 0.5
    assert kwargs["traces_sample_rate"] == 0.2
    assert kwargs["before_send"] is _before_send


def test_business_rejections_are_not_reported() -> None:
    error = InsufficientBalanceError(required=5000, available=10)
    hint = {"exc_info": (type(error), error, None)}

    assert _before_send({"level": "error"}, hint) is None


def test_persistence_failures_are_reported() -> None:
    error = PersistenceFailureError()
    event = {"level": "error"}

    assert _before_send(event, {"exc_info": (type(error), error, None)}) is event


def test_health_check_events_are_dropped() -> None:
    event = {"request": {"url": "http://testserver/api/v1/health"}}

    assert _before_send(event, None) is None


@patch("sentry_sdk.capture_exception")
def test_capture_exception(mock_capture: Mock) -> None:
    test_exception = ValueError(Decimal("1"))
    capture_exception(test_exception, request_id="req-1")

    mock_capture.assert_called_once_with(test_exception)
