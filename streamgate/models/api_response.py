"""Transaction Store response models.

Field names follow the store's camelCase JSON.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from streamgate.models.transaction import GatewayStatus


def unwrap(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the ``data`` object of a ``{success, data}`` envelope, or the payload itself."""
    data = payload.get("data")
    if isinstance(data, dict):
        merged = dict(data)
        for key in ("success", "message"):
            if key in payload and key not in merged:
                merged[key] = payload[key]
        return merged
    return payload


def _optional_str(value: Any) -> Optional[str]:
    # stores may send numeric ids
    return str(value) if value is not None else None


class SubmitPaymentResponse(BaseModel):
    """Response for POST /payments/momo."""

    success: bool = Field(default=True, description="False when the store rejected the request")
    transactionId: Optional[str] = Field(None, description="Store-assigned transaction id")
    status: GatewayStatus = Field(default=GatewayStatus.PENDING, description="Gateway status")
    message: Optional[str] = Field(None, description="Store message")
    serverTimeMillis: Optional[int] = Field(None, description="Store clock at response time")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SubmitPaymentResponse":
        data = unwrap(payload)
        # some store routes report the gateway status separately from the record status
        gateway = data.get("gatewayStatus") or (data.get("customerTransaction") or {}).get("gatewayStatus")
        status = GatewayStatus.parse(data.get("status"))
        if GatewayStatus.parse(gateway) == GatewayStatus.SUCCESSFUL:
            status = GatewayStatus.SUCCESSFUL
        return cls(
            success=data.get("success", True) is not False,
            transactionId=_optional_str(data.get("transactionId")),
            status=status,
            message=data.get("message") or data.get("error"),
            serverTimeMillis=data.get("serverTimeMillis"),
        )

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "transactionId": "TX-20240101-0001",
                "status": "PENDING",
                "message": "Payment request sent",
            }
        }


class PaymentStatusResponse(BaseModel):
    """Response for GET /payments/momo/status/{transactionId}."""

    transactionId: Optional[str] = Field(None, description="Transaction id")
    status: GatewayStatus = Field(..., description="Gateway status")
    reason: Optional[str] = Field(None, description="Decline reason")
    serverTimeMillis: Optional[int] = Field(None, description="Store clock at response time")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PaymentStatusResponse":
        data = unwrap(payload)
        return cls(
            transactionId=_optional_str(data.get("transactionId")),
            status=GatewayStatus.parse(data.get("status")),
            reason=data.get("reason") or data.get("message"),
            serverTimeMillis=data.get("serverTimeMillis"),
        )


class TransactionDetails(BaseModel):
    """Response for GET /payments/status/{transactionId}."""

    transactionId: Optional[str] = Field(None, description="Transaction id")
    amount: Optional[float] = Field(None, description="Charged amount")
    currency: Optional[str] = Field(None, description="ISO 4217 currency code")
    contentId: Optional[str] = Field(None, description="Purchased content id")
    paymentStatus: GatewayStatus = Field(default=GatewayStatus.PENDING, description="Gateway status")
    secureStreamingUrl: Optional[str] = Field(None, description="Signed streaming URL")
    secureHlsUrl: Optional[str] = Field(None, description="Signed HLS URL")
    secureDownloadUrl: Optional[str] = Field(None, description="Signed download URL")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TransactionDetails":
        data = unwrap(payload)
        if isinstance(data.get("payment"), dict):
            data = data["payment"]
        return cls(
            transactionId=_optional_str(data.get("transactionId")),
            amount=data.get("amount"),
            currency=data.get("currency"),
            contentId=_optional_str(data.get("contentId") or data.get("movieId")),
            paymentStatus=GatewayStatus.parse(data.get("paymentStatus") or data.get("status")),
            secureStreamingUrl=data.get("secureStreamingUrl"),
            secureHlsUrl=data.get("secureHlsUrl"),
            secureDownloadUrl=data.get("secureDownloadUrl"),
        )
