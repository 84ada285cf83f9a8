"""Engine configuration models.

Models from engine.yaml configuration.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from streamgate.models.purchase import AccessPeriod
from streamgate.utils.access_period import validate_access_period
from streamgate.utils.phone import DEFAULT_PHONE_EXAMPLE, DEFAULT_PHONE_PATTERNS


class PricingSettings(BaseModel):
    """Pricing rules for watch, download and series access."""

    default_currency: str = Field(default="RWF", description="Currency when content names none")
    watch_fallback_ratio: Decimal = Field(
        default=Decimal("0.8"), gt=0, description="Share of the generic price charged for a watch"
    )
    default_watch_price: Decimal = Field(default=Decimal("2.99"), gt=0, description="Watch price when content has none")
    default_download_price: Decimal = Field(
        default=Decimal("4.99"), gt=0, description="Download price when content has none"
    )
    default_series_base_price: Decimal = Field(
        default=Decimal("100"), gt=0, description="Series base price when content has none"
    )
    series_multipliers: dict[str, int] = Field(
        default_factory=lambda: {"24h": 1, "7d": 2, "30d": 3, "90d": 5, "365d": 8},
        description="Series base price multiplier per access period",
    )
    best_value_period: Optional[str] = Field(default="30d", description="Tier flagged as best value")
    savings_reference_period: Optional[str] = Field(
        default="7d", description="Tier savings are measured against; null disables savings"
    )
    zero_decimal_currencies: list[str] = Field(
        default_factory=lambda: ["RWF", "UGX", "JPY"],
        description="Currencies without minor units",
    )

    @field_validator("series_multipliers")
    @classmethod
    def _check_multipliers(cls, value: dict[str, int]) -> dict[str, int]:
        for period, multiplier in value.items():
            if not validate_access_period(period):
                raise ValueError(f"Invalid access period in series_multipliers: {period}")
            if multiplier <= 0:
                raise ValueError(f"Multiplier for {period} must be positive, got {multiplier}")
        return value

    class Config:
        json_schema_extra = {
            "example": {
                "default_currency": "RWF",
                "watch_fallback_ratio": "0.8",
                "series_multipliers": {"24h": 1, "7d": 2, "30d": 3, "90d": 5, "365d": 8},
                "best_value_period": "30d",
                "savings_reference_period": "7d",
            }
        }


class PollingSettings(BaseModel):
    """Gateway confirmation polling."""

    purchase_interval_seconds: float = Field(default=10.0, ge=0, description="Poll interval for content purchases")
    upgrade_interval_seconds: float = Field(default=3.0, ge=0, description="Poll interval for plan upgrades")
    max_polls: int = Field(default=30, gt=0, description="Completed lookups before timing out")
    max_lookup_failures: int = Field(
        default=5, ge=0, description="Consecutive network failures tolerated before giving up"
    )


class AccessSettings(BaseModel):
    """Entitlement windows and clock handling."""

    watch_window: str = Field(default="48h", description="Streaming window granted by a watch purchase")
    upgrade_default_period: str = Field(default="30d", description="Plan period when none is configured")
    clock_skew_tolerance_seconds: int = Field(
        default=300, ge=0, description="Slack before the local clock may deny a store-issued grant"
    )


class GuestSettings(BaseModel):
    """Guest trial and trailer preview allowances."""

    trial_limit_seconds: int = Field(default=60, gt=0, description="Guest playback allowance")
    trailer_preview_seconds: int = Field(default=60, gt=0, description="Trailer preview allowance per view")
    tick_interval_seconds: float = Field(default=1.0, gt=0, description="Countdown tick interval")


class PhoneSettings(BaseModel):
    """Payer phone number rules."""

    patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PHONE_PATTERNS),
        description="Accepted phone number regular expressions",
    )
    example: str = Field(default=DEFAULT_PHONE_EXAMPLE, description="Example quoted in errors")


class StoreSettings(BaseModel):
    """Transaction Store and catalog endpoints."""

    base_url: str = Field(default="http://localhost:5000/api", description="Backend API base URL")
    timeout_seconds: float = Field(default=30.0, gt=0, description="HTTP timeout")


class PlanDefinition(BaseModel):
    """Subscription plan that can be purchased as an upgrade."""

    id: str = Field(..., description="Plan identifier")
    name: str = Field(..., description="Display name")
    price: Decimal = Field(..., gt=0, description="Price per period")
    currency: str = Field(default="RWF", description="ISO 4217 currency code")
    period: AccessPeriod = Field(default=AccessPeriod.DAYS_30, description="Access period granted")
    max_devices: int = Field(default=1, gt=0, description="Concurrent devices")


class EngineSettings(BaseModel):
    """Complete engine.yaml configuration."""

    pricing: PricingSettings = Field(default_factory=PricingSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    access: AccessSettings = Field(default_factory=AccessSettings)
    guest: GuestSettings = Field(default_factory=GuestSettings)
    phone: PhoneSettings = Field(default_factory=PhoneSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    plans: list[PlanDefinition] = Field(default_factory=list, description="Upgradeable subscription plans")

    def get_plan(self, plan_id: str) -> Optional[PlanDefinition]:
        return next((plan for plan in self.plans if plan.id == plan_id), None)
