"""Entitlement cache - in-memory storage for access grants.

Thread-safe dictionary-based storage. Only the entitlement resolver writes
to it.
"""

import threading
from typing import Dict, Iterable, List, Optional

from streamgate.models.entitlement import Entitlement, EntitlementSource


class EntitlementCache:
    """In-memory storage for entitlements, indexed by user.

    Lookups by user, (user, content) and transaction id.
    """

    def __init__(self):
        """Initialize entitlement cache with empty storage."""
        self._by_user: Dict[str, List[Entitlement]] = {}
        self._lock = threading.RLock()

    def add(self, entitlement: Entitlement) -> None:
        """Add an entitlement.

        A record for a transaction already cached replaces the earlier one.

        Args:
            entitlement: Entitlement to store
        """
        with self._lock:
            records = self._by_user.setdefault(entitlement.user_id, [])
            if entitlement.transaction_id is not None:
                records[:] = [
                    e for e in records if e.transaction_id != entitlement.transaction_id
                ]
            records.append(entitlement)

    def get_by_user(self, user_id: str) -> List[Entitlement]:
        """Get all entitlements for a user.

        Args:
            user_id: User identifier

        Returns:
            List of Entitlement objects (possibly expired)
        """
        with self._lock:
            return list(self._by_user.get(user_id, []))

    def get_for(self, user_id: str, content_id: str) -> List[Entitlement]:
        """Get all entitlements a user holds for one piece of content."""
        with self._lock:
            return [e for e in self._by_user.get(user_id, []) if e.content_id == content_id]

    def find_by_transaction(self, transaction_id: str) -> Optional[Entitlement]:
        """Find the entitlement produced by a transaction (None if not cached)."""
        with self._lock:
            for records in self._by_user.values():
                for entitlement in records:
                    if entitlement.transaction_id == transaction_id:
                        return entitlement
            return None

    def replace_store_records(self, user_id: str, records: Iterable[Entitlement]) -> None:
        """Swap a user's store-sourced entitlements for a fresh list.

        Local optimistic records survive unless the store now reports the same
        transaction, in which case the store's copy wins.
        """
        fresh = list(records)
        fresh_transactions = {e.transaction_id for e in fresh if e.transaction_id}
        with self._lock:
            kept = [
                e
                for e in self._by_user.get(user_id, [])
                if e.source == EntitlementSource.LOCAL and e.transaction_id not in fresh_transactions
            ]
            self._by_user[user_id] = kept + fresh

    def count(self) -> int:
        """Get total number of cached entitlements."""
        with self._lock:
            return sum(len(records) for records in self._by_user.values())

    def clear(self) -> None:
        """Clear all entitlements (useful for testing)."""
        with self._lock:
            self._by_user.clear()
