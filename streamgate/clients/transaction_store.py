"""Transaction Store client - mobile-money charge submission and status lookup.

Talks to the storefront backend over HTTP/JSON with httpx. Every failure is
raised as ``TransactionStoreError``; ``status_code`` is None for network-level
failures and the HTTP status otherwise.
"""

from decimal import Decimal
from typing import Any, Optional

import httpx

from streamgate.errors import TransactionStoreError
from streamgate.logging_config import get_logger
from streamgate.models.api_response import (
    PaymentStatusResponse,
    SubmitPaymentResponse,
    TransactionDetails,
    unwrap,
)
from streamgate.models.entitlement import Entitlement
from streamgate.models.purchase import AccessKind, PurchaseRequest
from streamgate.models.settings import StoreSettings
from streamgate.utils.phone import mask_phone

logger = get_logger(__name__)

_SUBMIT_PATHS = {
    AccessKind.WATCH: "/payments/momo",
    AccessKind.DOWNLOAD: "/payments/momo",
    AccessKind.SERIES_ACCESS: "/payments/series/momo",
    AccessKind.SUBSCRIPTION_UPGRADE: "/payments/subscription/momo",
}


def _json_amount(amount: Decimal) -> Any:
    """Whole amounts go out as integers, others as floats."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _error_message(payload: dict[str, Any], default: str) -> str:
    return payload.get("message") or payload.get("error") or default


class TransactionStoreClient:
    """Async client for the Transaction Store.

    Args:
        settings: Endpoint settings, defaults to the global configuration
        auth_token: Bearer token of the signed-in user
        client: Pre-built httpx client (tests pass one with a mock transport)
    """

    def __init__(
        self,
        settings: Optional[StoreSettings] = None,
        auth_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if settings is None:
            from streamgate.config import get_config

            settings = get_config().settings.store
        headers = {"Authorization": f"Bearer {auth_token}"} if auth_token else {}
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            headers=headers,
        )
        if client is not None and headers:
            self._client.headers.update(headers)

    async def __aenter__(self) -> "TransactionStoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit_payment(self, request: PurchaseRequest) -> SubmitPaymentResponse:
        """Submit a mobile-money charge.

        Raises:
            TransactionStoreError: On network failure or an HTTP error status
        """
        body: dict[str, Any] = {
            "movieId": request.content_id,
            "type": request.access_kind.value,
            "amount": _json_amount(request.amount),
            "currency": request.currency,
            "phoneNumber": request.payer_phone,
            "userId": request.user_id,
        }
        if request.description:
            body["description"] = request.description
        if request.access_period is not None:
            body["accessPeriod"] = request.access_period.value
        if request.access_kind == AccessKind.SERIES_ACCESS:
            body["contentType"] = "series"
        if request.access_kind == AccessKind.SUBSCRIPTION_UPGRADE:
            body["planId"] = request.content_id

        logger.info(
            "payment_submitting",
            content_id=request.content_id,
            access_kind=request.access_kind.value,
            amount=str(request.amount),
            currency=request.currency,
            phone=mask_phone(request.payer_phone),
        )
        payload = await self._request(
            "POST",
            _SUBMIT_PATHS[request.access_kind],
            json=body,
            headers={"Idempotency-Key": request.idempotency_key},
        )
        return SubmitPaymentResponse.from_payload(payload)

    async def get_payment_status(self, transaction_id: str) -> PaymentStatusResponse:
        """Look up the gateway status of a transaction."""
        payload = await self._request("GET", f"/payments/momo/status/{transaction_id}")
        return PaymentStatusResponse.from_payload(payload)

    async def get_transaction_details(self, transaction_id: str) -> TransactionDetails:
        """Fetch amount, content and secure URLs for a transaction."""
        payload = await self._request("GET", f"/payments/status/{transaction_id}")
        return TransactionDetails.from_payload(payload)

    async def get_user_entitlements(self, user_id: str) -> list[Entitlement]:
        """List the store's entitlement records for a user.

        Raises:
            TransactionStoreError: On transport errors or a malformed record
        """
        payload = await self._request("GET", f"/payments/user/{user_id}/entitlements")
        data = payload.get("data", payload.get("entitlements", []))
        if isinstance(data, dict):
            data = data.get("entitlements", [])
        try:
            return [Entitlement.from_store(record) for record in data]
        except (KeyError, TypeError, ValueError) as e:
            raise TransactionStoreError(
                f"Malformed entitlement record for user {user_id}: {e!r}",
                payload=payload,
            ) from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransactionStoreError(f"Transaction Store timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise TransactionStoreError(f"Transaction Store unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if response.is_error:
            body = unwrap(payload)
            raise TransactionStoreError(
                _error_message(body, f"Transaction Store returned HTTP {response.status_code}"),
                status_code=response.status_code,
                payload=body,
            )
        return payload
