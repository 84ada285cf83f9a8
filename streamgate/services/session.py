"""Session - the client-side state container shared by the engine.

Holds the current viewer, the transaction ledger and the entitlement cache.
It is passed explicitly to the resolver and the payment flow instead of
living in module globals.
"""

from typing import Optional

from streamgate.models.entitlement import Viewer
from streamgate.repositories.entitlement_cache import EntitlementCache
from streamgate.repositories.transaction_ledger import TransactionLedger


class Session:
    """Per-client state container.

    Args:
        viewer: current viewer, defaults to an anonymous guest
        ledger: transaction ledger, a fresh one if not provided
        entitlements: entitlement cache, a fresh one if not provided
    """

    def __init__(
        self,
        viewer: Optional[Viewer] = None,
        ledger: Optional[TransactionLedger] = None,
        entitlements: Optional[EntitlementCache] = None,
    ):
        self.viewer = viewer or Viewer.guest()
        self.ledger = ledger if ledger is not None else TransactionLedger()
        self.entitlements = entitlements if entitlements is not None else EntitlementCache()

    @property
    def user_id(self) -> Optional[str]:
        return self.viewer.user_id

    @property
    def is_guest(self) -> bool:
        return self.viewer.is_guest

    def sign_in(self, user_id: str) -> None:
        """Switch the session to an authenticated viewer."""
        self.viewer = Viewer(user_id=user_id)

    def sign_out(self) -> None:
        """Return to an anonymous viewer and drop cached state."""
        self.viewer = Viewer.guest()
        self.ledger.clear()
        self.entitlements.clear()
