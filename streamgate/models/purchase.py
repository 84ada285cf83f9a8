"""Purchase models - access kinds, access periods, price quotes and requests.

A PurchaseRequest is built when a user confirms a priced option and is
immutable once submitted.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from streamgate.utils.access_period import format_access_period, parse_access_period


class AccessKind(str, Enum):
    """Category of entitlement a purchase grants."""

    WATCH = "watch"  # Time-boxed streaming
    DOWNLOAD = "download"  # Permanent download (and streaming)
    SERIES_ACCESS = "series_access"  # Time-boxed, covers all episodes
    SUBSCRIPTION_UPGRADE = "subscription_upgrade"  # Plan upgrade

    @classmethod
    def parse(cls, value: "str | AccessKind") -> "AccessKind":
        """Normalize a payment-type string to its canonical kind.

        The storefront and the store use several spellings for the same kind;
        they are folded here and nowhere else.

        Raises:
            ValueError: If the value names no known kind
        """
        if isinstance(value, AccessKind):
            return value
        key = str(value).strip().lower().replace("-", "_")
        kind = _KIND_ALIASES.get(key)
        if kind is None:
            raise ValueError(f"Unknown access kind: '{value}'")
        return kind

    @property
    def is_time_boxed(self) -> bool:
        return self is not AccessKind.DOWNLOAD


_KIND_ALIASES = {
    "watch": AccessKind.WATCH,
    "movie_watch": AccessKind.WATCH,
    "download": AccessKind.DOWNLOAD,
    "movie_download": AccessKind.DOWNLOAD,
    "series_access": AccessKind.SERIES_ACCESS,
    "seriesaccess": AccessKind.SERIES_ACCESS,
    "series": AccessKind.SERIES_ACCESS,
    "subscription_upgrade": AccessKind.SUBSCRIPTION_UPGRADE,
    "subscriptionupgrade": AccessKind.SUBSCRIPTION_UPGRADE,
    "subscription": AccessKind.SUBSCRIPTION_UPGRADE,
}


class AccessPeriod(str, Enum):
    """Purchasable series access tiers."""

    HOURS_24 = "24h"
    DAYS_7 = "7d"
    DAYS_30 = "30d"
    DAYS_90 = "90d"
    DAYS_365 = "365d"

    @property
    def millis(self) -> int:
        return parse_access_period(self.value)

    @property
    def label(self) -> str:
        return format_access_period(self.value)


class PriceQuote(BaseModel):
    """Charge for one (content, access kind, period) option."""

    amount: Decimal = Field(..., gt=0, description="Amount to charge")
    currency: str = Field(default="RWF", description="ISO 4217 currency code")
    access_kind: AccessKind = Field(..., description="Access kind being priced")
    access_period: Optional[AccessPeriod] = Field(None, description="Series access tier")
    label: str = Field(..., description="Display label for the option")
    is_best_value: bool = Field(default=False, description="Flagged as best value tier")
    savings: Optional[Decimal] = Field(None, description="Computed savings vs. reference tier")
    savings_percent: Optional[int] = Field(None, description="Savings as whole percent")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "amount": "3000",
                "currency": "RWF",
                "access_kind": "series_access",
                "access_period": "30d",
                "label": "30 Days",
                "is_best_value": True,
                "savings": "5571",
                "savings_percent": 65,
            }
        }


class PurchaseRequest(BaseModel):
    """Charge request submitted to the Transaction Store."""

    content_id: str = Field(..., description="Content (or plan) being purchased")
    user_id: str = Field(..., description="Purchasing user")
    access_kind: AccessKind = Field(..., description="Access kind")
    amount: Decimal = Field(..., gt=0, description="Amount to charge")
    currency: str = Field(default="RWF", description="ISO 4217 currency code")
    payer_phone: str = Field(..., description="Normalized payer phone number")
    access_period: Optional[AccessPeriod] = Field(None, description="Series access tier")
    description: Optional[str] = Field(None, description="Human-readable charge description")
    idempotency_key: str = Field(..., description="Key shared by all submissions of one logical purchase")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "content_id": "movie-42",
                "user_id": "user-123",
                "access_kind": "watch",
                "amount": "500",
                "currency": "RWF",
                "payer_phone": "0788123456",
                "description": "Watch: The Long Rains",
                "idempotency_key": "6f1c7d2e-...",
            }
        }
