"""Payment flow state - the observable handed to the presentation layer."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from streamgate.models.content import ContentMetadata
from streamgate.models.purchase import PriceQuote
from streamgate.models.transaction import FailureKind, Transaction


class FlowStep(str, Enum):
    """Steps of a purchase attempt."""

    CHOOSING_OPTION = "choosing_option"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    AWAITING_GATEWAY = "awaiting_gateway"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowStep.SUCCEEDED, FlowStep.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return self in (FlowStep.SUBMITTING, FlowStep.AWAITING_GATEWAY)


class FlowError(BaseModel):
    """User-facing error attached to the flow state."""

    kind: FailureKind = Field(..., description="Failure classification")
    message: str = Field(..., description="Message shown to the user")
    field: Optional[str] = Field(None, description="Offending input field, for validation errors")


class FlowState(BaseModel):
    """Snapshot of a payment flow."""

    step: FlowStep = Field(default=FlowStep.CHOOSING_OPTION, description="Current step")
    error: Optional[FlowError] = Field(None, description="Last error, if any")
    status_message: str = Field(default="", description="Progress message")
    poll_count: int = Field(default=0, description="Completed status lookups")
    content: Optional[ContentMetadata] = Field(None, description="Content being purchased")
    quote: Optional[PriceQuote] = Field(None, description="Selected priced option")
    transaction: Optional[Transaction] = Field(None, description="Current transaction")
    last_transaction_id: Optional[str] = Field(None, description="Kept for support reference after failure")
    details: Optional[dict[str, Any]] = Field(None, description="Transaction details fetched on success")

    @property
    def reason(self) -> Optional[str]:
        return self.error.message if self.error else None
