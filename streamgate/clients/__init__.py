"""HTTP clients for the Transaction Store and the catalog service."""

from streamgate.clients.catalog import CatalogClient
from streamgate.clients.transaction_store import TransactionStoreClient

__all__ = ["CatalogClient", "TransactionStoreClient"]
