"""Entitlement resolver - computes current access rights.

Resolution order for (viewer, content):
1. An active entitlement in the cache grants access.
2. Otherwise a SUCCESSFUL transaction in the ledger grants access, with the
   window its purchase would have produced (entitlement issuance may lag
   settlement).
3. Otherwise the viewer has no access and must purchase.

Guests never get paid access through this path.
"""

from typing import Callable, Iterable, Optional, Protocol

from streamgate.errors import AuthenticationRequiredError
from streamgate.logging_config import get_logger
from streamgate.models.content import ContentMetadata, ContentType
from streamgate.models.entitlement import AccessRights, Entitlement, EntitlementSource, Viewer
from streamgate.models.purchase import AccessKind
from streamgate.models.settings import AccessSettings
from streamgate.models.transaction import Transaction
from streamgate.services.clock import Clock
from streamgate.services.session import Session
from streamgate.state_logger import log_entitlement_granted
from streamgate.utils.access_period import MILLIS_PER_SECOND, parse_access_period

logger = get_logger(__name__)

RefreshListener = Callable[[str], None]

# Which purchased kinds satisfy a requested kind
_GRANTING_KINDS = {
    AccessKind.WATCH: frozenset({AccessKind.WATCH, AccessKind.DOWNLOAD, AccessKind.SERIES_ACCESS}),
    AccessKind.DOWNLOAD: frozenset({AccessKind.DOWNLOAD}),
    AccessKind.SERIES_ACCESS: frozenset({AccessKind.SERIES_ACCESS}),
    AccessKind.SUBSCRIPTION_UPGRADE: frozenset({AccessKind.SUBSCRIPTION_UPGRADE}),
}


class EntitlementFeed(Protocol):
    """Anything that can list a user's entitlements from the store."""

    async def get_user_entitlements(self, user_id: str) -> list[Entitlement]: ...


class EntitlementResolver:
    """Answers access questions from the session's cache and ledger.

    Args:
        session: State container holding the entitlement cache and ledger
        clock: Local clock, defaults to wall time
        settings: Access windows, defaults to the global configuration
    """

    def __init__(
        self,
        session: Session,
        clock: Optional[Clock] = None,
        settings: Optional[AccessSettings] = None,
    ):
        if settings is None:
            from streamgate.config import get_config

            settings = get_config().settings.access
        self.session = session
        self.clock = clock or Clock()
        self.settings = settings
        self._listeners: list[RefreshListener] = []

    # ------------------------------------------------------------------
    # Access questions
    # ------------------------------------------------------------------

    def has_access(
        self,
        viewer: Viewer,
        content_id: str,
        kind: Optional[AccessKind] = None,
        server_time_millis: Optional[int] = None,
    ) -> bool:
        """Whether the viewer may use the content now.

        Args:
            viewer: Person asking
            content_id: Content (or plan) id
            kind: Requested use; None means any paid access
            server_time_millis: Store-issued current time, preferred over the local clock

        Returns:
            True if an active grant covers the request
        """
        if viewer.is_guest:
            return False
        return bool(self._active_grants(viewer.user_id, content_id, kind, server_time_millis))

    def access_expiry(
        self,
        viewer: Viewer,
        content_id: str,
        kind: Optional[AccessKind] = None,
        server_time_millis: Optional[int] = None,
    ) -> Optional[int]:
        """Expiry of the viewer's access, in Unix millis.

        Returns None for permanent access and when there is no access at all;
        callers distinguish the two with ``has_access``.
        """
        if viewer.is_guest:
            return None
        return _latest_expiry(self._active_grants(viewer.user_id, content_id, kind, server_time_millis))

    def requires_purchase(
        self,
        viewer: Viewer,
        content_id: str,
        kind: Optional[AccessKind] = None,
        server_time_millis: Optional[int] = None,
    ) -> bool:
        """Negation of ``has_access`` for signed-in viewers.

        Raises:
            AuthenticationRequiredError: For guests, who must sign in first
        """
        if viewer.is_guest:
            raise AuthenticationRequiredError("Sign in to purchase or watch this title")
        return not self.has_access(viewer, content_id, kind, server_time_millis)

    def access_rights(
        self,
        viewer: Viewer,
        content: ContentMetadata,
        server_time_millis: Optional[int] = None,
    ) -> AccessRights:
        """Everything the viewer may do with one content item."""
        if viewer.is_guest:
            return AccessRights(requires_sign_in=True)

        grants = self._active_grants(viewer.user_id, content.content_id, None, server_time_millis)
        kinds = {grant.kind for grant in grants}
        return AccessRights(
            can_watch=bool(kinds & _GRANTING_KINDS[AccessKind.WATCH]),
            can_download=AccessKind.DOWNLOAD in kinds,
            can_browse_series=(
                content.content_type == ContentType.SERIES and AccessKind.SERIES_ACCESS in kinds
            ),
            expires_at_millis=_latest_expiry(grants),
        )

    def show_watch_affordance(self, viewer: Viewer, content_id: str) -> bool:
        """Whether to show a "watch" control, judged by the local clock alone.

        This is a display hint: it may hide the control early under clock
        skew, but ``has_access`` stays authoritative.
        """
        if viewer.is_guest:
            return False
        now = self.clock.now_millis()
        return any(
            grant.is_active(now)
            for grant in self._candidate_grants(viewer.user_id, content_id, AccessKind.WATCH)
        )

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def entitlement_for_transaction(
        self,
        transaction: Transaction,
        granted_at_millis: Optional[int] = None,
    ) -> Entitlement:
        """Derive the entitlement a successful transaction grants.

        Watch purchases last the configured watch window, downloads never
        expire, series access lasts the purchased period, plan upgrades last
        their period.
        """
        request = transaction.request
        granted_at = granted_at_millis
        if granted_at is None:
            granted_at = transaction.settled_at_millis or transaction.created_at_millis

        window = self._window_millis(request.access_kind, request.access_period)
        return Entitlement(
            user_id=request.user_id,
            content_id=request.content_id,
            kind=request.access_kind,
            granted_at_millis=granted_at,
            expires_at_millis=granted_at + window if window is not None else None,
            transaction_id=transaction.transaction_id,
            source=EntitlementSource.LOCAL,
        )

    def record_grant(self, entitlement: Entitlement) -> None:
        """Write an optimistic entitlement and notify refresh listeners."""
        self.session.entitlements.add(entitlement)
        log_entitlement_granted(
            user_id=entitlement.user_id,
            content_id=entitlement.content_id,
            kind=entitlement.kind.value,
            granted_at_millis=entitlement.granted_at_millis,
            expires_at_millis=entitlement.expires_at_millis,
            transaction_id=entitlement.transaction_id,
        )
        self._notify(entitlement.user_id)

    async def refresh(self, viewer: Viewer, source: EntitlementFeed) -> list[Entitlement]:
        """Reload the viewer's entitlements from the Transaction Store.

        Returns:
            The store's entitlement list

        Raises:
            TransactionStoreError: If the store cannot be reached
        """
        if viewer.is_guest:
            return []
        records = await source.get_user_entitlements(viewer.user_id)
        self.session.entitlements.replace_store_records(viewer.user_id, records)
        logger.info(
            "entitlements_refreshed",
            user_id=viewer.user_id,
            count=len(records),
        )
        self._notify(viewer.user_id)
        return records

    def on_refresh(self, listener: RefreshListener) -> Callable[[], None]:
        """Register a listener called with the user id after every cache write.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _window_millis(self, kind: AccessKind, period) -> Optional[int]:
        if kind == AccessKind.DOWNLOAD:
            return None
        if kind == AccessKind.WATCH:
            return parse_access_period(self.settings.watch_window)
        if kind == AccessKind.SERIES_ACCESS:
            if period is None:
                raise ValueError("Series access transaction has no access period")
            return parse_access_period(period.value)
        if period is not None:
            return parse_access_period(period.value)
        return parse_access_period(self.settings.upgrade_default_period)

    def _candidate_grants(
        self,
        user_id: str,
        content_id: str,
        kind: Optional[AccessKind],
    ) -> list[Entitlement]:
        granting = _GRANTING_KINDS[AccessKind.parse(kind)] if kind is not None else None

        grants = self.session.entitlements.get_for(user_id, content_id)
        cached_transactions = {g.transaction_id for g in grants if g.transaction_id}
        for transaction in self.session.ledger.get_successful_for(user_id, content_id):
            if transaction.transaction_id not in cached_transactions:
                grants.append(self.entitlement_for_transaction(transaction))

        if granting is None:
            return grants
        return [grant for grant in grants if grant.kind in granting]

    def _active_grants(
        self,
        user_id: str,
        content_id: str,
        kind: Optional[AccessKind],
        server_time_millis: Optional[int],
    ) -> list[Entitlement]:
        if server_time_millis is not None:
            now = server_time_millis
            skew = 0
        else:
            now = self.clock.now_millis()
            skew = self.settings.clock_skew_tolerance_seconds * MILLIS_PER_SECOND

        return [
            grant
            for grant in self._candidate_grants(user_id, content_id, kind)
            # local clock may not deny what the store still considers valid
            if grant.is_active(now, skew if grant.source == EntitlementSource.STORE else 0)
        ]

    def _notify(self, user_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(user_id)
            except Exception as e:
                logger.error(
                    "refresh_listener_failed",
                    user_id=user_id,
                    error=str(e),
                    exc_info=True,
                )


def _latest_expiry(grants: Iterable[Entitlement]) -> Optional[int]:
    expiry: Optional[int] = None
    for grant in grants:
        if grant.expires_at_millis is None:
            return None
        if expiry is None or grant.expires_at_millis > expiry:
            expiry = grant.expires_at_millis
    return expiry
