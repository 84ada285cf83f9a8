"""Pydantic models for content, purchases, transactions, entitlements and settings."""

# Configuration models
from .settings import (
    AccessSettings,
    EngineSettings,
    GuestSettings,
    PhoneSettings,
    PlanDefinition,
    PollingSettings,
    PricingSettings,
    StoreSettings,
)

# Content models
from .content import (
    ContentMetadata,
    ContentType,
)

# Purchase models
from .purchase import (
    AccessKind,
    AccessPeriod,
    PriceQuote,
    PurchaseRequest,
)

# Transaction models
from .transaction import (
    FailureKind,
    GatewayStatus,
    LocalStatus,
    Transaction,
)

# Entitlement models
from .entitlement import (
    AccessRights,
    Entitlement,
    EntitlementSource,
    Viewer,
)

# Guest playback
from .guest import GuestSession

# Flow state
from .flow import (
    FlowError,
    FlowState,
    FlowStep,
)

# Store responses
from .api_response import (
    PaymentStatusResponse,
    SubmitPaymentResponse,
    TransactionDetails,
)

__all__ = [
    # Configuration
    "AccessSettings",
    "EngineSettings",
    "GuestSettings",
    "PhoneSettings",
    "PlanDefinition",
    "PollingSettings",
    "PricingSettings",
    "StoreSettings",
    # Content
    "ContentMetadata",
    "ContentType",
    # Purchase
    "AccessKind",
    "AccessPeriod",
    "PriceQuote",
    "PurchaseRequest",
    # Transaction
    "FailureKind",
    "GatewayStatus",
    "LocalStatus",
    "Transaction",
    # Entitlement
    "AccessRights",
    "Entitlement",
    "EntitlementSource",
    "Viewer",
    # Guest
    "GuestSession",
    # Flow
    "FlowError",
    "FlowState",
    "FlowStep",
    # Store responses
    "PaymentStatusResponse",
    "SubmitPaymentResponse",
    "TransactionDetails",
]
