"""Payment lifecycle and content-access engine for a mobile-money streaming storefront."""

from streamgate.models.flow import FlowState, FlowStep
from streamgate.services.clock import Clock, VirtualClock
from streamgate.services.entitlement_resolver import EntitlementResolver
from streamgate.services.guest_timer import GuestTrialTimer, TrailerPreviewTimer
from streamgate.services.payment_flow import PaymentFlow
from streamgate.services.pricing import PricingCalculator, price
from streamgate.services.session import Session

__version__ = "0.1.0"

__all__ = [
    "Clock",
    "EntitlementResolver",
    "FlowState",
    "FlowStep",
    "GuestTrialTimer",
    "PaymentFlow",
    "PricingCalculator",
    "Session",
    "TrailerPreviewTimer",
    "VirtualClock",
    "price",
]
