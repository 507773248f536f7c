from __future__ import annotations

from wallet_service.core.logging import (
    bind_request_context,
    clear_request_context,
    get_request_id,
    mask_payout_details,
)


def test_payout_identifiers_are_masked() -> None:
    event = {
        "event": "withdrawal_requested",
        "destination": {
            "method": "BKASH",
            "account_number": "01712345678",
            "account_name": "Test User",
        },
        "email": "payee@example.com",
        "pay_id": "123",
    }

    masked = mask_payout_details(None, "info", event)

    assert masked["destination"]["account_number"] == "*******5678"
    assert masked["destination"]["account_name"] == "Test User"
    assert masked["destination"]["method"] == "BKASH"
    assert masked["email"].endswith(".com")
    assert masked["email"].startswith("*")
    assert masked["pay_id"] == "****"


def test_events_without_payout_data_are_untouched() -> None:
    event = {"event": "withdrawal_approved", "withdrawal_id": "abc", "points": 10}

    assert mask_payout_details(None, "info", dict(event)) == event


def test_request_context_round_trip() -> None:
    bind_request_context("req-42", user_id="user-1")
    assert get_request_id() == "req-42"

    clear_request_context()
    assert get_request_id() is None
