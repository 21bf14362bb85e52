"""
Session context — who is signed in, as seen by one consumer.

States:
    RESOLVING      initial session lookup not finished yet
    ANONYMOUS      no session
    AUTHENTICATED  session present, `identity` set

Every auth event from the remote store (sign-in, sign-out in another
tab, token refresh, expiry) updates the state and is forwarded to the
registered listeners.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from app.application.errors import NotAuthenticated
from app.application.remote import AuthSession, Identity, RemoteStoreClient

logger = logging.getLogger(__name__)

STATE_RESOLVING = "RESOLVING"
STATE_ANONYMOUS = "ANONYMOUS"
STATE_AUTHENTICATED = "AUTHENTICATED"

# AuthResult statuses
RESULT_SESSION_ACTIVE = "session_active"
RESULT_PENDING_CONFIRMATION = "pending_confirmation"
RESULT_SIGNED_OUT = "signed_out"
RESULT_FAILED = "failed"


@dataclass(frozen=True)
class AuthResult:
    status: str
    identity: Optional[Identity] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != RESULT_FAILED


IdentityListener = Callable[[Optional[Identity]], None]


class SessionContext:
    def __init__(self, client: RemoteStoreClient):
        self.client = client
        self.state = STATE_RESOLVING
        self.session: Optional[AuthSession] = None
        self._lock = threading.Lock()
        self._listeners: List[IdentityListener] = []
        self._auth_handle = None

    @property
    def identity(self) -> Optional[Identity]:
        session = self.session
        return session.user if session else None

    def start(self) -> "SessionContext":
        """Resolve the initial session and follow auth changes until close()."""
        if self._auth_handle is None:
            self._auth_handle = self.client.on_auth_change(self._on_auth_change)
        self._apply(self.client.get_session())
        return self

    def close(self) -> None:
        handle, self._auth_handle = self._auth_handle, None
        if handle is not None:
            handle.unsubscribe()
        with self._lock:
            self._listeners.clear()

    def add_listener(self, listener: IdentityListener) -> Callable[[], None]:
        """Called with the new identity (or None) on every change. Returns a remover."""
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def require_identity(self) -> Identity:
        identity = self.identity
        if identity is None:
            raise NotAuthenticated()
        return identity

    # ------------------------------------------------------------------
    # Auth operations, one round trip each
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str) -> AuthResult:
        data, error = self.client.sign_up(email, password)
        if error:
            return AuthResult(RESULT_FAILED, error=error.message)
        if data.get("session") is None:
            # The account exists but must be confirmed before a session is issued
            return AuthResult(RESULT_PENDING_CONFIRMATION, identity=data.get("user"))
        self._apply(data["session"])
        return AuthResult(RESULT_SESSION_ACTIVE, identity=data["session"].user)

    def sign_in(self, email: str, password: str) -> AuthResult:
        data, error = self.client.sign_in(email, password)
        if error:
            return AuthResult(RESULT_FAILED, error=error.message)
        self._apply(data["session"])
        return AuthResult(RESULT_SESSION_ACTIVE, identity=data["session"].user)

    def sign_out(self) -> AuthResult:
        _, error = self.client.sign_out()
        if error:
            return AuthResult(RESULT_FAILED, error=error.message)
        self._apply(None)
        return AuthResult(RESULT_SIGNED_OUT)

    # ------------------------------------------------------------------

    def _on_auth_change(self, event: str, session: Optional[AuthSession]) -> None:
        logger.debug("Auth event %s", event)
        self._apply(session)

    def _apply(self, session: Optional[AuthSession]) -> None:
        with self._lock:
            before = self.identity
            self.session = session
            self.state = STATE_AUTHENTICATED if session else STATE_ANONYMOUS
            after = self.identity
            listeners = list(self._listeners)

        if before == after:
            return
        for listener in listeners:
            listener(after)
