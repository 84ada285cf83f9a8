"""Simple state change logging for payment flows, transactions and grants.

Tracks state transitions with before/after values for debugging and auditing.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from streamgate.logging_config import get_logger

logger = get_logger(__name__)


def _format_millis(millis: Optional[int]) -> Optional[str]:
    if millis is None:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat()


def log_flow_step_change(
    content_id: Optional[str],
    old_step: Any,
    new_step: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log payment flow step change.

    Args:
        content_id: Content being purchased
        old_step: Previous step
        new_step: New step
        reason: Reason for the change
        **extra_context: Additional context (transaction_id, user_id, etc.)
    """
    logger.info(
        "flow_step_changed",
        content_id=content_id,
        old_step=str(old_step),
        new_step=str(new_step),
        reason=reason,
        **extra_context,
    )


def log_transaction_status_change(
    transaction_id: str,
    content_id: str,
    old_status: Any,
    new_status: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log transaction local status change.

    Args:
        transaction_id: Store-assigned transaction id
        content_id: Purchased content
        old_status: Previous status
        new_status: New status
        reason: Reason for the change
        **extra_context: Additional context
    """
    logger.info(
        "transaction_status_changed",
        transaction_id=transaction_id,
        content_id=content_id,
        old_status=str(old_status),
        new_status=str(new_status),
        reason=reason,
        **extra_context,
    )


def log_entitlement_granted(
    user_id: str,
    content_id: str,
    kind: Any,
    granted_at_millis: int,
    expires_at_millis: Optional[int],
    **extra_context: Any,
) -> None:
    """Log an entitlement written to the local cache."""
    logger.info(
        "entitlement_granted",
        user_id=user_id,
        content_id=content_id,
        kind=str(kind),
        granted_at=_format_millis(granted_at_millis),
        expires_at=_format_millis(expires_at_millis) or "never",
        **extra_context,
    )


def log_guest_limit_reached(
    timer: str,
    limit_seconds: int,
    **extra_context: Any,
) -> None:
    """Log a guest or trailer countdown reaching zero."""
    logger.info(
        "guest_limit_reached",
        timer=timer,
        limit_seconds=limit_seconds,
        **extra_context,
    )
