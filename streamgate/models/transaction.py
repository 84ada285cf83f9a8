"""Transaction models - one purchase attempt tracked through gateway confirmation.

Created on successful submission; mutated only by the payment flow as poll
responses arrive. Terminal once the gateway settles or the poll budget runs out.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from streamgate.models.purchase import PurchaseRequest


class GatewayStatus(str, Enum):
    """Status as reported by the Transaction Store."""

    PENDING = "PENDING"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: Optional[str]) -> "GatewayStatus":
        """Normalize store status spellings ("succeeded", "failed", ...)."""
        key = (value or "").strip().upper()
        if key in ("SUCCESSFUL", "SUCCEEDED", "SUCCESS", "COMPLETED"):
            return cls.SUCCESSFUL
        if key in ("FAILED", "FAILURE", "DECLINED", "REJECTED"):
            return cls.FAILED
        return cls.PENDING


class LocalStatus(str, Enum):
    """Engine-side status of a transaction."""

    AWAITING_GATEWAY = "AWAITING_GATEWAY"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not LocalStatus.AWAITING_GATEWAY


class FailureKind(str, Enum):
    """Why a purchase attempt failed."""

    VALIDATION = "VALIDATION"
    SUBMISSION = "SUBMISSION"
    GATEWAY_DECLINED = "GATEWAY_DECLINED"
    TIMEOUT = "TIMEOUT"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"


class Transaction(BaseModel):
    """Internal record for one submitted purchase."""

    transaction_id: str = Field(..., description="Identifier assigned by the Transaction Store")
    request: PurchaseRequest = Field(..., description="Snapshot of the submitted request")

    gateway_status: GatewayStatus = Field(default=GatewayStatus.PENDING, description="Last gateway status")
    local_status: LocalStatus = Field(default=LocalStatus.AWAITING_GATEWAY, description="Engine status")

    poll_attempts: int = Field(default=0, ge=0, description="Completed status lookups")
    lookup_failures: int = Field(default=0, ge=0, description="Consecutive failed lookups")

    created_at_millis: int = Field(..., description="Submission time (Unix millis)")
    settled_at_millis: Optional[int] = Field(None, description="When a terminal status was reached")

    failure_kind: Optional[FailureKind] = Field(None, description="Failure classification")
    failure_reason: Optional[str] = Field(None, description="Store-supplied or engine reason")

    @property
    def user_id(self) -> str:
        return self.request.user_id

    @property
    def content_id(self) -> str:
        return self.request.content_id

    @property
    def is_terminal(self) -> bool:
        return self.local_status.is_terminal

    def set_local_status(
        self,
        new_status: LocalStatus,
        at_millis: int,
        reason: Optional[str] = None,
        failure_kind: Optional[FailureKind] = None,
    ) -> None:
        """Move the local status forward and log the transition.

        Raises:
            ValueError: If the transaction is already terminal or the move
                would regress the status
        """
        from streamgate.state_logger import log_transaction_status_change

        old_status = self.local_status
        if old_status == new_status:
            return
        if old_status.is_terminal:
            raise ValueError(
                f"Transaction {self.transaction_id} is already {old_status.value}; "
                f"cannot move to {new_status.value}"
            )

        self.local_status = new_status
        if new_status.is_terminal:
            self.settled_at_millis = at_millis
        if new_status == LocalStatus.FAILED:
            self.failure_kind = failure_kind
            self.failure_reason = reason

        log_transaction_status_change(
            transaction_id=self.transaction_id,
            content_id=self.content_id,
            old_status=old_status.value,
            new_status=new_status.value,
            reason=reason,
            user_id=self.user_id,
            poll_attempts=self.poll_attempts,
        )

    def record_poll(self, gateway_status: GatewayStatus, max_polls: int) -> None:
        """Count one completed status lookup.

        Raises:
            ValueError: If the poll budget is already spent
        """
        if self.poll_attempts >= max_polls:
            raise ValueError(
                f"Transaction {self.transaction_id} exceeded poll budget of {max_polls}"
            )
        self.poll_attempts += 1
        self.lookup_failures = 0
        self.gateway_status = gateway_status

    def record_lookup_failure(self) -> int:
        """Count one failed lookup; returns the consecutive failure count."""
        self.lookup_failures += 1
        return self.lookup_failures

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "TX-20240101-0001",
                "gateway_status": "PENDING",
                "local_status": "AWAITING_GATEWAY",
                "poll_attempts": 3,
                "lookup_failures": 0,
                "created_at_millis": 1700000000000,
            }
        }
