"""In-memory repositories for entitlements and transactions."""

from streamgate.repositories.entitlement_cache import EntitlementCache
from streamgate.repositories.transaction_ledger import (
    TransactionLedger,
    TransactionNotFoundError,
)

__all__ = [
    "EntitlementCache",
    "TransactionLedger",
    "TransactionNotFoundError",
]
