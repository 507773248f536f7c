from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import MOBILE_DETAILS, RecordingNotifier, balance_of, open_account
from wallet_service.accounts.enums import AccountRole, KycStatus
from wallet_service.accounts.models import Account
from wallet_service.api.routes import load_routers
from wallet_service.app import create_app
from wallet_service.core.config import Environment, Settings
from wallet_service.core.constants import API_PREFIX
from wallet_service.ledger.service import LedgerService


def _headers(account: Account) -> dict[str, str]:
    return {"X-User-Id": str(account.id)}


@pytest.fixture
async def member(session: AsyncSession, ledger: LedgerService) -> Account:
    return await open_account(session, ledger, points=200_000)


@pytest.fixture
async def admin(session: AsyncSession, ledger: LedgerService) -> Account:
    return await open_account(session, ledger, role=AccountRole.ADMIN)


async def _withdraw(
    client: AsyncClient, account: Account, amount: str = "50", method: str = "BKASH"
):
    return await client.post(
        "/api/v1/withdrawals",
        json={"amount": amount, "method": method, "account_details": MOBILE_DETAILS},
        headers=_headers(account),
    )


class TestAuthentication:
    async def test_health_needs_no_identity(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["service"] == "wallet-service"
        assert body["environment"] == "test"
        assert "X-Request-ID" in response.headers

    async def test_request_id_is_echoed(self, async_client: AsyncClient) -> None:
        response = await async_client.get(
            "/api/v1/health", headers={"X-Request-ID": "req-123"}
        )

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_missing_identity_header(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/wallet")

        assert response.status_code == 422

    async def test_unknown_user(self, async_client: AsyncClient) -> None:
        response = await async_client.get(
            "/api/v1/wallet", headers={"X-User-Id": str(uuid.uuid4())}
        )

        assert response.status_code == 401

    async def test_admin_routes_require_admin_role(
        self, async_client: AsyncClient, member: Account
    ) -> None:
        response = await async_client.get(
            "/api/v1/admin/withdrawals", headers=_headers(member)
        )

        assert response.status_code == 403


class TestWithdrawalEndpoints:
    async def test_create_returns_fee_breakdown(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        member: Account,
        notifier: RecordingNotifier,
    ) -> None:
        response = await _withdraw(async_client, member)

        assert response.status_code == 201
        body = response.json()
        assert body["fee"] == "0.75"
        assert body["net_amount"] == "49.25"
        assert body["status"] == "PENDING"
        assert body["withdrawal"]["points_held"] == 50_000
        assert body["withdrawal"]["account_details"]["account_number"] == "01712345678"
        assert body["estimated_processing_time"]
        assert await balance_of(session, member.id) == 150_000
        assert notifier.kinds() == ["withdrawal_submitted"]

    async def test_kyc_is_required_above_threshold(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        ledger: LedgerService,
    ) -> None:
        unverified = await open_account(
            session, ledger, kyc_status=KycStatus.PENDING, points=500_000
        )

        response = await _withdraw(async_client, unverified, amount="150")

        assert response.status_code == 400
        assert "KYC" in response.json()["detail"]

    async def test_invalid_details_are_reported(
        self, async_client: AsyncClient, member: Account
    ) -> None:
        response = await async_client.post(
            "/api/v1/withdrawals",
            json={"amount": "50", "method": "PAYPAL", "account_details": {}},
            headers=_headers(member),
        )

        assert response.status_code == 400

    async def test_sub_cent_amount_is_rejected(
        self, async_client: AsyncClient, session: AsyncSession, member: Account
    ) -> None:
        response = await _withdraw(async_client, member, amount="4.995")

        assert response.status_code == 400
        assert response.json()["detail"] == (
            "Amount cannot be more precise than one cent"
        )
        assert await balance_of(session, member.id) == 200_000

    async def test_cooldown_sets_retry_after(
        self, async_client: AsyncClient, member: Account
    ) -> None:
        first = await _withdraw(async_client, member)
        second = await _withdraw(async_client, member)

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.headers["Retry-After"] == str(24 * 3600)

    async def test_list_and_cancel(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        member: Account,
    ) -> None:
        created = (await _withdraw(async_client, member)).json()["withdrawal"]

        listing = await async_client.get(
            "/api/v1/withdrawals", headers=_headers(member)
        )
        assert listing.status_code == 200
        body = listing.json()
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["summary"]["pending"]["count"] == 1

        cancelled = await async_client.post(
            f"/api/v1/withdrawals/{created['id']}/cancel", headers=_headers(member)
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"
        assert await balance_of(session, member.id) == 200_000

    async def test_other_users_withdrawal_is_not_found(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        ledger: LedgerService,
        member: Account,
    ) -> None:
        created = (await _withdraw(async_client, member)).json()["withdrawal"]
        stranger = await open_account(session, ledger)

        response = await async_client.get(
            f"/api/v1/withdrawals/{created['id']}", headers=_headers(stranger)
        )

        assert response.status_code == 404


class TestAdminWithdrawalEndpoints:
    async def test_approve_then_conflict(
        self,
        async_client: AsyncClient,
        member: Account,
        admin: Account,
    ) -> None:
        created = (await _withdraw(async_client, member)).json()["withdrawal"]
        url = f"/api/v1/admin/withdrawals/{created['id']}"

        approved = await async_client.patch(
            url,
            json={"action": "approve", "transaction_id": "TX-1"},
            headers=_headers(admin),
        )
        again = await async_client.patch(
            url, json={"action": "approve"}, headers=_headers(admin)
        )

        assert approved.status_code == 200
        body = approved.json()
        assert body["status"] == "COMPLETED"
        assert body["transaction_id"] == "TX-1"
        assert body["processed_by"] == str(admin.id)
        assert again.status_code == 409

    async def test_reject_requires_reason_and_refunds(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        member: Account,
        admin: Account,
    ) -> None:
        created = (await _withdraw(async_client, member)).json()["withdrawal"]
        url = f"/api/v1/admin/withdrawals/{created['id']}"

        missing = await async_client.patch(
            url, json={"action": "reject"}, headers=_headers(admin)
        )
        rejected = await async_client.patch(
            url,
            json={"action": "reject", "rejection_reason": "Invalid account"},
            headers=_headers(admin),
        )

        assert missing.status_code == 400
        assert rejected.status_code == 200
        assert rejected.json()["rejection_reason"] == "Invalid account"
        assert await balance_of(session, member.id) == 200_000

    async def test_listing_reports_counts(
        self,
        async_client: AsyncClient,
        member: Account,
        admin: Account,
    ) -> None:
        await _withdraw(async_client, member)

        response = await async_client.get(
            "/api/v1/admin/withdrawals",
            params={"status": "PENDING"},
            headers=_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["counts"]["PENDING"] == 1
        assert body["counts"]["COMPLETED"] == 0


class TestWalletEndpoints:
    async def test_wallet_summary(
        self, async_client: AsyncClient, member: Account
    ) -> None:
        await _withdraw(async_client, member, amount="20")

        response = await async_client.get("/api/v1/wallet", headers=_headers(member))

        assert response.status_code == 200
        body = response.json()
        assert body["points"] == 180_000
        assert body["available_points"] == 160_000
        assert body["cash_equivalent"] == "180.00"
        assert body["pending_withdrawal"] == "20.00"
        assert body["referral_code"] == member.referral_code
        assert body["can_withdraw"] is True

    async def test_transaction_history_filters_by_type(
        self, async_client: AsyncClient, member: Account
    ) -> None:
        await _withdraw(async_client, member)

        response = await async_client.get(
            "/api/v1/transactions",
            params={"type": "WITHDRAWAL"},
            headers=_headers(member),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        item = body["items"][0]
        assert item["points"] == -50_000
        assert item["is_credit"] is False
        assert item["metadata"]["method"] == "BKASH"
        assert body["summary"]["total_bonuses"] == 200_000


class TestReferralEndpoints:
    async def test_admin_configures_levels_and_records_earnings(
        self,
        async_client: AsyncClient,
        session: AsyncSession,
        ledger: LedgerService,
        admin: Account,
    ) -> None:
        referrer = await open_account(session, ledger)
        earner = await open_account(
            session, ledger, referral_code=referrer.referral_code
        )

        levels = await async_client.put(
            "/api/v1/admin/referral-levels",
            json={
                "levels": [
                    {"level": 1, "commission": {"type": "PERCENTAGE", "value": "10"}},
                    {"level": 2, "commission": {"type": "FLAT", "value": "5"}},
                ]
            },
            headers=_headers(admin),
        )
        assert levels.status_code == 200
        assert [item["level"] for item in levels.json()] == [1, 2]

        payload = {
            "account_id": str(earner.id),
            "points": 1000,
            "source_event_id": "submission-1",
        }
        first = await async_client.post(
            "/api/v1/admin/earnings", json=payload, headers=_headers(admin)
        )
        replay = await async_client.post(
            "/api/v1/admin/earnings", json=payload, headers=_headers(admin)
        )

        assert first.status_code == 200
        assert first.json()["created"] is True
        assert [item["points"] for item in first.json()["commissions"]] == [100]
        assert replay.json()["created"] is False
        assert replay.json()["commissions"] == []
        assert await balance_of(session, referrer.id) == 100

        dashboard = await async_client.get(
            "/api/v1/referrals", headers=_headers(referrer)
        )
        assert dashboard.status_code == 200
        body = dashboard.json()
        assert body["referral_code"] == referrer.referral_code
        assert body["referrals_by_level"]["1"] == 1
        assert body["earnings_by_level"]["1"]["points"] == 100
        assert body["lifetime_points"] == 100

    async def test_single_level_crud(
        self, async_client: AsyncClient, admin: Account
    ) -> None:
        saved = await async_client.put(
            "/api/v1/admin/referral-levels/3",
            json={"commission": {"type": "FLAT", "value": "7"}},
            headers=_headers(admin),
        )
        invalid = await async_client.put(
            "/api/v1/admin/referral-levels/2",
            json={"commission": {"type": "PERCENTAGE", "value": "150"}},
            headers=_headers(admin),
        )
        deleted = await async_client.delete(
            "/api/v1/admin/referral-levels/3", headers=_headers(admin)
        )
        missing = await async_client.delete(
            "/api/v1/admin/referral-levels/3", headers=_headers(admin)
        )

        assert saved.status_code == 200
        assert saved.json()["commission"]["type"] == "FLAT"
        assert invalid.status_code == 400
        assert deleted.status_code == 204
        assert missing.status_code == 404


class TestAdminAccountEndpoints:
    async def test_open_adjust_and_reconcile(
        self, async_client: AsyncClient, admin: Account
    ) -> None:
        account_id = str(uuid.uuid4())

        opened = await async_client.post(
            "/api/v1/admin/accounts",
            json={"account_id": account_id, "kyc_status": "APPROVED"},
            headers=_headers(admin),
        )
        assert opened.status_code == 201
        assert opened.json()["points_balance"] == 0

        adjusted = await async_client.post(
            f"/api/v1/admin/accounts/{account_id}/adjust",
            json={"points": 500, "amount": "2.50", "reason": "Promotion"},
            headers=_headers(admin),
        )
        assert adjusted.status_code == 201
        assert adjusted.json()["metadata"]["actorId"] == str(admin.id)

        overdraft = await async_client.post(
            f"/api/v1/admin/accounts/{account_id}/adjust",
            json={"points": -501, "reason": "Too much"},
            headers=_headers(admin),
        )
        assert overdraft.status_code == 400

        report = await async_client.get(
            f"/api/v1/admin/accounts/{account_id}/reconcile",
            headers=_headers(admin),
        )
        assert report.status_code == 200
        body = report.json()
        assert body["is_balanced"] is True
        assert body["points_balance"] == 500
        assert body["cash_balance"] == "2.50"

    async def test_unknown_account_is_not_found(
        self, async_client: AsyncClient, admin: Account
    ) -> None:
        response = await async_client.get(
            f"/api/v1/admin/accounts/{uuid.uuid4()}/reconcile",
            headers=_headers(admin),
        )

        assert response.status_code == 404


def test_docs_are_hidden_in_production() -> None:
    production = create_app(Settings(environment=Environment.PRODUCTION))
    development = create_app(Settings(environment=Environment.DEVELOPMENT))

    assert production.docs_url is None
    assert production.redoc_url is None
    assert development.docs_url == "/docs"


def test_every_route_module_is_mounted_under_api_prefix() -> None:
    routers = list(load_routers())

    assert len(routers) == 7
    assert all(router.prefix.startswith(API_PREFIX) for router in routers)
    assert routers[0].prefix == f"{API_PREFIX}/admin"
