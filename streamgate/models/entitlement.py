"""Entitlement models - durable grants of access and the viewers they apply to.

Entitlements are read-only from the engine's perspective and expire by time
comparison; they are never deleted.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from streamgate.models.purchase import AccessKind


class EntitlementSource(str, Enum):
    """Where an entitlement record came from."""

    LOCAL = "local"  # Optimistic record written when a transaction succeeds
    STORE = "store"  # Fetched from the Transaction Store


class Entitlement(BaseModel):
    """A grant of access to one piece of content."""

    user_id: str = Field(..., description="User holding the grant")
    content_id: str = Field(..., description="Content (or plan) the grant covers")
    kind: AccessKind = Field(..., description="Access kind granted")
    granted_at_millis: int = Field(..., description="Grant time (Unix millis)")
    expires_at_millis: Optional[int] = Field(None, description="Expiry (Unix millis); None = permanent")
    transaction_id: Optional[str] = Field(None, description="Transaction that produced the grant")
    source: EntitlementSource = Field(default=EntitlementSource.LOCAL, description="Record origin")

    @property
    def is_permanent(self) -> bool:
        return self.expires_at_millis is None

    def is_active(self, now_millis: int, tolerance_millis: int = 0) -> bool:
        """Check whether the grant still confers access at ``now_millis``.

        Args:
            now_millis: Reference time
            tolerance_millis: Extra time allowed past expiry (clock-skew slack)
        """
        if self.expires_at_millis is None:
            return True
        return now_millis < self.expires_at_millis + tolerance_millis

    @classmethod
    def from_store(cls, payload: dict[str, Any]) -> "Entitlement":
        """Build from a Transaction Store entitlement record (camelCase).

        Raises:
            KeyError: If ``userId`` or ``grantedAt`` is missing
            ValueError: If a field does not validate
        """
        return cls(
            user_id=str(payload["userId"]),
            content_id=str(payload.get("contentId") or payload.get("movieId")),
            kind=AccessKind.parse(payload.get("kind") or payload.get("type")),
            granted_at_millis=int(payload["grantedAt"]),
            expires_at_millis=int(payload["expiresAt"]) if payload.get("expiresAt") is not None else None,
            transaction_id=str(payload["transactionId"]) if payload.get("transactionId") is not None else None,
            source=EntitlementSource.STORE,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user-123",
                "content_id": "movie-42",
                "kind": "watch",
                "granted_at_millis": 1700000000000,
                "expires_at_millis": 1700172800000,
                "transaction_id": "TX-20240101-0001",
                "source": "local",
            }
        }


class Viewer(BaseModel):
    """The person asking for access; anonymous when ``user_id`` is None."""

    user_id: Optional[str] = Field(None, description="Authenticated user id")

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @classmethod
    def guest(cls) -> "Viewer":
        return cls(user_id=None)


class AccessRights(BaseModel):
    """Everything a viewer may currently do with one piece of content."""

    can_stream_trailer: bool = Field(default=True, description="Trailer preview is always available")
    can_watch: bool = Field(default=False, description="Full-title streaming")
    can_download: bool = Field(default=False, description="File download")
    can_browse_series: bool = Field(default=False, description="Series episode browsing")
    expires_at_millis: Optional[int] = Field(None, description="Latest expiry among active grants")
    requires_sign_in: bool = Field(default=False, description="Viewer must sign in before purchasing")
