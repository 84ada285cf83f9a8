"""Transaction ledger - in-memory storage for submitted transactions.

Thread-safe dictionary-based storage.
"""

import threading
from typing import Dict, List, Optional

from streamgate.models.transaction import GatewayStatus, Transaction


class TransactionNotFoundError(Exception):
    """Raised when a transaction is not found in the ledger."""

    pass


class TransactionLedger:
    """In-memory storage for transactions.

    Lookup by transaction id, user_id and (user_id, content_id).
    """

    def __init__(self):
        """Initialize transaction ledger with empty storage."""
        self._transactions: Dict[str, Transaction] = {}
        self._lock = threading.RLock()

    def add(self, transaction: Transaction) -> None:
        """Add a transaction to the ledger.

        Args:
            transaction: Transaction to store

        Raises:
            ValueError: If transaction id already exists
        """
        with self._lock:
            if transaction.transaction_id in self._transactions:
                raise ValueError(
                    f"Transaction with id '{transaction.transaction_id}' already exists"
                )
            self._transactions[transaction.transaction_id] = transaction

    def get_by_id(self, transaction_id: str) -> Transaction:
        """Get transaction by id.

        Raises:
            TransactionNotFoundError: If id not found
        """
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None:
                raise TransactionNotFoundError(
                    f"Transaction not found for id: {transaction_id}"
                )
            return transaction

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Find transaction by id (returns None if not found)."""
        with self._lock:
            return self._transactions.get(transaction_id)

    def get_by_user(self, user_id: str) -> List[Transaction]:
        """Get all transactions for a specific user."""
        with self._lock:
            return [t for t in self._transactions.values() if t.user_id == user_id]

    def get_for(self, user_id: str, content_id: str) -> List[Transaction]:
        """Get all transactions a user made for one piece of content."""
        with self._lock:
            return [
                t
                for t in self._transactions.values()
                if t.user_id == user_id and t.content_id == content_id
            ]

    def get_successful_for(self, user_id: str, content_id: str) -> List[Transaction]:
        """Get settled-successful transactions for (user, content)."""
        return [
            t for t in self.get_for(user_id, content_id)
            if t.gateway_status == GatewayStatus.SUCCESSFUL
        ]

    def count(self) -> int:
        """Get total number of transactions."""
        with self._lock:
            return len(self._transactions)

    def clear(self) -> None:
        """Clear all transactions (useful for testing)."""
        with self._lock:
            self._transactions.clear()
