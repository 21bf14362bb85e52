"""
Subscription store — the signed-in user's subscriptions snapshot and
every write to them.

States:
    UNAUTHENTICATED  no identity; snapshot empty; writes raise NotAuthenticated
    LOADING          identity known, a reload is in flight
    READY            snapshot loaded

Writes go to the remote store first, then the whole snapshot is
reloaded before the call returns (refetch-after-write). Realtime change
events reach the very same reload routine, `invalidate()`.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from app.application.errors import (
    ConfigurationError, NotAuthenticated, NotFoundOrForbidden, RemoteError,
)
from app.application.remote import (
    Identity, RemoteFailure, RemoteResponse, RemoteStoreClient, raise_for_failure,
)
from app.application.session_context import SessionContext
from app.domain.renewals import sort_for_listing
from app.domain.subscription import Subscription, validate_subscription_data

logger = logging.getLogger(__name__)

STATE_UNAUTHENTICATED = "UNAUTHENTICATED"
STATE_LOADING = "LOADING"
STATE_READY = "READY"


class SubscriptionStore:
    """
    Usage:
        context = SessionContext(client).start()
        store = SubscriptionStore(context, client).start()
        store.create({"name": "Netflix", "price": "15.49", "cycle": "monthly"})
        store.list()
        ...
        store.close()
    """

    def __init__(self, context: SessionContext, client: RemoteStoreClient):
        self.context = context
        self.client = client
        self.state = STATE_UNAUTHENTICATED
        self.last_error: Optional[RemoteFailure] = None

        self._lock = threading.Lock()
        self._snapshot: Tuple[Subscription, ...] = ()
        self._identity: Optional[Identity] = None
        self._feed_handle = None
        self._remove_listener = None
        self._closed = False
        self._writes_in_flight = 0
        self._refresh_deferred = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "SubscriptionStore":
        """Bind to the context's identity and follow its changes."""
        self._remove_listener = self.context.add_listener(self._on_identity_change)
        self._on_identity_change(self.context.identity)
        return self

    def close(self) -> None:
        """Stop listening. In-flight remote calls finish, their results are dropped."""
        with self._lock:
            self._closed = True
            handle, self._feed_handle = self._feed_handle, None
            self._identity = None
            self._snapshot = ()
            self.state = STATE_UNAUTHENTICATED
        try:
            if handle is not None:
                handle.unsubscribe()
        finally:
            if self._remove_listener is not None:
                self._remove_listener()
                self._remove_listener = None

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        with self._lock:
            if self._closed or identity == self._identity:
                return
            # Drop the previous user's data before anything else can render it
            old_handle, self._feed_handle = self._feed_handle, None
            self._identity = identity
            self._snapshot = ()
            self.last_error = None
            self.state = STATE_LOADING if identity else STATE_UNAUTHENTICATED

        try:
            if old_handle is not None:
                old_handle.unsubscribe()
        finally:
            if identity is not None:
                self._follow(identity)

    def _follow(self, identity: Identity) -> None:
        handle = self.client.subscribe_changes(identity.user_id, self._on_change_event)
        with self._lock:
            if self._closed or self._identity != identity:
                stale = True
            else:
                stale = False
                self._feed_handle = handle
        if stale:
            handle.unsubscribe()
            return
        try:
            self.invalidate()
        except (RemoteError, ConfigurationError) as exc:
            logger.warning("Initial subscriptions load failed: %s", exc)

    def _on_change_event(self, event: Dict[str, Any]) -> None:
        logger.debug("Change event %s on subscriptions", event.get("type"))
        with self._lock:
            if self._writes_in_flight:
                # The write path reloads once the write returns
                self._refresh_deferred = True
                return
        self.invalidate()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> Tuple[Subscription, ...]:
        """Current snapshot, renewal date ascending, undated last."""
        return self._snapshot

    def get(self, sub_id: str) -> Optional[Subscription]:
        for sub in self._snapshot:
            if sub.id == sub_id:
                return sub
        return None

    def raise_if_failed(self) -> None:
        """Raise the last reload failure, if the snapshot is not current."""
        error = self.last_error
        if error is not None:
            raise_for_failure(error)

    def invalidate(self) -> Tuple[Subscription, ...]:
        """
        Reload the whole snapshot from the remote store.

        The single re-synchronization path for writes and change events.
        A response that arrives after the identity changed (or after
        close()) is discarded.

        Raises:
            RemoteError / ConfigurationError: the select failed; the
            previous snapshot is kept
        """
        with self._lock:
            identity = self._identity
            if identity is None or self._closed:
                return self._snapshot
            self.state = STATE_LOADING

        data, error = self.client.select_subscriptions(identity.user_id)

        with self._lock:
            if self._closed or self._identity != identity:
                logger.debug("Dropping stale subscriptions response")
                return self._snapshot
            if error:
                self.state = STATE_READY
                self.last_error = error
            else:
                rows = [Subscription.from_row(r) for r in data or []]
                self._snapshot = tuple(sort_for_listing(rows))
                self.state = STATE_READY
                self.last_error = None
            snapshot = self._snapshot

        if error:
            raise_for_failure(error)
        return snapshot

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _require_identity(self) -> Identity:
        identity = self.context.identity
        if identity is None or self._closed:
            raise NotAuthenticated()
        return identity

    def _write_through(self, call: Callable[[], RemoteResponse]) -> RemoteResponse:
        """Run one remote write; change events it triggers are folded into one reload."""
        with self._lock:
            self._writes_in_flight += 1
        try:
            return call()
        finally:
            with self._lock:
                self._writes_in_flight -= 1

    def _reload_after_write(self, wrote: bool = True) -> None:
        """
        Refetch after a write. The write has already landed, so a failed
        reload is kept in `last_error` instead of being raised.
        """
        with self._lock:
            deferred, self._refresh_deferred = self._refresh_deferred, False
        if not (wrote or deferred):
            return
        try:
            self.invalidate()
        except (RemoteError, ConfigurationError) as exc:
            logger.warning("Reload after write failed: %s", exc)

    def create(self, data: Dict[str, Any]) -> Subscription:
        """
        Validate, stamp the owner, insert, reload.

        Raises:
            ValidationError: invalid input (nothing was sent)
            NotAuthenticated / RemoteError / ConfigurationError: the insert failed
        """
        identity = self._require_identity()
        payload = validate_subscription_data(data)
        payload["user_id"] = identity.user_id

        row, error = self._write_through(lambda: self.client.insert_subscription(payload))
        if error:
            logger.error("Error creating subscription: %s", error.message)
            self._reload_after_write(wrote=False)
            raise_for_failure(error)

        created = Subscription.from_row(row)
        self._reload_after_write()
        return created

    def update(self, sub_id: str, changes: Dict[str, Any]) -> Subscription:
        """
        Raises:
            ValidationError / NotAuthenticated / RemoteError / ConfigurationError
            NotFoundOrForbidden: no row with this id owned by the caller
        """
        identity = self._require_identity()
        payload = validate_subscription_data(changes, partial=True)

        rows, error = self._write_through(
            lambda: self.client.update_subscription(sub_id, identity.user_id, payload)
        )
        if error:
            logger.error("Error updating subscription %s: %s", sub_id, error.message)
            self._reload_after_write(wrote=False)
            raise_for_failure(error)
        if not rows:
            self._reload_after_write(wrote=False)
            raise NotFoundOrForbidden()

        updated = Subscription.from_row(rows[0])
        self._reload_after_write()
        return updated

    def delete(self, sub_id: str) -> None:
        """
        Raises:
            NotAuthenticated / RemoteError / ConfigurationError
            NotFoundOrForbidden: no row with this id owned by the caller
        """
        identity = self._require_identity()

        rows, error = self._write_through(
            lambda: self.client.delete_subscription(sub_id, identity.user_id)
        )
        if error:
            logger.error("Error deleting subscription %s: %s", sub_id, error.message)
            self._reload_after_write(wrote=False)
            raise_for_failure(error)
        if not rows:
            self._reload_after_write(wrote=False)
            raise NotFoundOrForbidden()

        self._reload_after_write()
