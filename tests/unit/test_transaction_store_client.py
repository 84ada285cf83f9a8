"""Tests for TransactionStoreClient against an httpx mock transport."""

import json
from decimal import Decimal

import httpx
import pytest

from streamgate.clients.transaction_store import TransactionStoreClient
from streamgate.errors import TransactionStoreError
from streamgate.models import (
    AccessKind,
    AccessPeriod,
    EntitlementSource,
    GatewayStatus,
    PurchaseRequest,
    StoreSettings,
)

BASE_URL = "http://store.test/api"


def make_client(handler, auth_token="token-abc"):
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return TransactionStoreClient(settings=StoreSettings(base_url=BASE_URL), auth_token=auth_token, client=http)


def make_request(kind=AccessKind.WATCH, period=None, content_id="movie-42"):
    return PurchaseRequest(
        content_id=content_id,
        user_id="user-123",
        access_kind=kind,
        amount=Decimal("500"),
        currency="RWF",
        payer_phone="0788123456",
        access_period=period,
        description="Watch: The Long Rains",
        idempotency_key="key-123",
    )


class TestSubmitPayment:
    """Tests for POST /payments/momo and its variants."""

    @pytest.mark.asyncio
    async def test_submit_sends_charge(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"success": True, "data": {"transactionId": "TX-1", "status": "PENDING"}},
            )

        async with make_client(handler) as client:
            response = await client.submit_payment(make_request())

        assert seen["path"] == "/api/payments/momo"
        assert seen["headers"]["Idempotency-Key"] == "key-123"
        assert seen["headers"]["Authorization"] == "Bearer token-abc"
        assert seen["body"] == {
            "movieId": "movie-42",
            "type": "watch",
            "amount": 500,
            "currency": "RWF",
            "phoneNumber": "0788123456",
            "userId": "user-123",
            "description": "Watch: The Long Rains",
        }
        assert response.success is True
        assert response.transactionId == "TX-1"
        assert response.status == GatewayStatus.PENDING

    @pytest.mark.asyncio
    async def test_series_uses_series_route(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"transactionId": "TX-2", "status": "PENDING"})

        async with make_client(handler) as client:
            await client.submit_payment(make_request(AccessKind.SERIES_ACCESS, AccessPeriod.DAYS_30, "series-7"))

        assert seen["path"] == "/api/payments/series/momo"
        assert seen["body"]["accessPeriod"] == "30d"
        assert seen["body"]["contentType"] == "series"

    @pytest.mark.asyncio
    async def test_upgrade_uses_subscription_route(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"transactionId": "TX-3", "status": "PENDING"})

        async with make_client(handler) as client:
            await client.submit_payment(make_request(AccessKind.SUBSCRIPTION_UPGRADE, content_id="pro"))

        assert seen["path"] == "/api/payments/subscription/momo"
        assert seen["body"]["planId"] == "pro"

    @pytest.mark.asyncio
    async def test_gateway_status_overrides_record_status(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {
                        "transactionId": 991,
                        "status": "PENDING",
                        "customerTransaction": {"gatewayStatus": "SUCCESSFUL"},
                    },
                },
            )

        async with make_client(handler) as client:
            response = await client.submit_payment(make_request())

        assert response.status == GatewayStatus.SUCCESSFUL
        assert response.transactionId == "991"

    @pytest.mark.asyncio
    async def test_rejection_reported_as_unsuccessful(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "Phone not registered"})

        async with make_client(handler) as client:
            response = await client.submit_payment(make_request())

        assert response.success is False
        assert response.message == "Phone not registered"

    @pytest.mark.asyncio
    async def test_http_error_carries_status_and_message(self):
        def handler(request):
            return httpx.Response(400, json={"success": False, "message": "Invalid phone number"})

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError) as exc_info:
                await client.submit_payment(make_request())

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid phone number"
        assert exc_info.value.is_network_error is False

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError) as exc_info:
                await client.submit_payment(make_request())

        assert exc_info.value.status_code is None
        assert exc_info.value.is_network_error is True

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(503, text="Service Unavailable")

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError) as exc_info:
                await client.submit_payment(make_request())

        assert exc_info.value.status_code == 503
        assert "503" in exc_info.value.message


class TestLookups:
    """Tests for status, details and entitlement lookups."""

    @pytest.mark.asyncio
    async def test_payment_status(self):
        def handler(request):
            assert request.url.path == "/api/payments/momo/status/TX-1"
            return httpx.Response(
                200,
                json={"success": True, "data": {"status": "FAILED", "reason": "Insufficient funds"}},
            )

        async with make_client(handler) as client:
            response = await client.get_payment_status("TX-1")

        assert response.status == GatewayStatus.FAILED
        assert response.reason == "Insufficient funds"

    @pytest.mark.asyncio
    async def test_status_spellings_normalized(self):
        def handler(request):
            return httpx.Response(200, json={"status": "succeeded"})

        async with make_client(handler) as client:
            response = await client.get_payment_status("TX-1")

        assert response.status == GatewayStatus.SUCCESSFUL

    @pytest.mark.asyncio
    async def test_transaction_details(self):
        def handler(request):
            assert request.url.path == "/api/payments/status/TX-1"
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {
                        "payment": {
                            "transactionId": "TX-1",
                            "amount": 500,
                            "currency": "RWF",
                            "movieId": "movie-42",
                            "status": "SUCCESSFUL",
                            "secureStreamingUrl": "https://cdn.example.com/s/TX-1",
                        }
                    },
                },
            )

        async with make_client(handler) as client:
            details = await client.get_transaction_details("TX-1")

        assert details.contentId == "movie-42"
        assert details.paymentStatus == GatewayStatus.SUCCESSFUL
        assert details.secureStreamingUrl == "https://cdn.example.com/s/TX-1"
        assert details.secureDownloadUrl is None

    @pytest.mark.asyncio
    async def test_user_entitlements(self):
        def handler(request):
            assert request.url.path == "/api/payments/user/user-123/entitlements"
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": [
                        {
                            "userId": "user-123",
                            "movieId": "movie-42",
                            "type": "movie_download",
                            "grantedAt": 1704067200000,
                            "expiresAt": None,
                            "transactionId": "TX-1",
                        }
                    ],
                },
            )

        async with make_client(handler) as client:
            records = await client.get_user_entitlements("user-123")

        assert len(records) == 1
        assert records[0].kind == AccessKind.DOWNLOAD
        assert records[0].is_permanent is True
        assert records[0].source == EntitlementSource.STORE

    @pytest.mark.asyncio
    async def test_malformed_entitlement_record(self):
        def handler(request):
            return httpx.Response(200, json={"data": [{"movieId": "movie-42", "type": "watch"}]})

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError, match="Malformed entitlement record"):
                await client.get_user_entitlements("user-123")

    @pytest.mark.asyncio
    async def test_unknown_entitlement_kind(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"data": [{"userId": "user-123", "movieId": "movie-42", "type": "rental", "grantedAt": 1}]},
            )

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError):
                await client.get_user_entitlements("user-123")

    @pytest.mark.asyncio
    async def test_lookup_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransactionStoreError, match="timed out"):
                await client.get_payment_status("TX-1")
