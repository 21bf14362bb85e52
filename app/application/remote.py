"""
Remote store client contract.

Auth, subscriptions CRUD and the realtime change feed are provided by a
hosted backend. Use cases depend only on this interface; the in-repo
SQLAlchemy adapter lives in app.infrastructure.remote.

Every call returns a RemoteResponse, a (data, error) pair:

    data, error = client.sign_in(email, password)
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional, Protocol

from app.application.errors import ConfigurationError, RemoteError

# Auth change events
AUTH_SIGNED_IN = "SIGNED_IN"
AUTH_SIGNED_OUT = "SIGNED_OUT"
AUTH_TOKEN_REFRESHED = "TOKEN_REFRESHED"

# Failure codes
FAILURE_ERROR = "error"
FAILURE_AUTH = "auth"
FAILURE_UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Identity
    expires_at: datetime


@dataclass(frozen=True)
class RemoteFailure:
    message: str
    code: str = FAILURE_ERROR


@dataclass(frozen=True)
class RemoteResponse:
    data: Any = None
    error: Optional[RemoteFailure] = None

    def __iter__(self):
        yield self.data
        yield self.error

    @property
    def ok(self) -> bool:
        return self.error is None


AuthCallback = Callable[[str, Optional[AuthSession]], None]
ChangeCallback = Callable[[Dict[str, Any]], None]


class RemoteStoreClient(ABC):
    """
    One authenticated caller of the hosted backend.

    Listener registrations return a handle with an idempotent
    `unsubscribe()`.
    """

    # --- auth ---

    @abstractmethod
    def get_session(self) -> Optional[AuthSession]:
        """Current session, None when signed out or expired."""

    @abstractmethod
    def on_auth_change(self, callback: AuthCallback):
        """Register for (event, session) notifications."""

    @abstractmethod
    def sign_up(self, email: str, password: str) -> RemoteResponse:
        """data: {"user": Identity, "session": AuthSession | None}"""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> RemoteResponse:
        """data: {"user": Identity, "session": AuthSession}"""

    @abstractmethod
    def sign_out(self) -> RemoteResponse:
        """Revoke the session; data is None."""

    # --- subscriptions table ---

    @abstractmethod
    def select_subscriptions(self, user_id: str) -> RemoteResponse:
        """data: list of rows, renewal_date ascending, nulls last."""

    @abstractmethod
    def insert_subscription(self, row: Dict[str, Any]) -> RemoteResponse:
        """data: the inserted row, with its server-assigned id."""

    @abstractmethod
    def update_subscription(self, sub_id: str, user_id: str, changes: Dict[str, Any]) -> RemoteResponse:
        """data: list of updated rows (empty when nothing matched)."""

    @abstractmethod
    def delete_subscription(self, sub_id: str, user_id: str) -> RemoteResponse:
        """data: list of deleted rows (empty when nothing matched)."""

    # --- realtime ---

    @abstractmethod
    def subscribe_changes(self, user_id: str, callback: ChangeCallback):
        """Register for change events on the user's subscriptions."""


class RenewalSource(Protocol):
    """Service-role read across all users, used by the renewal sync."""

    def select_renewing_between(self, start: date, end: date) -> RemoteResponse:
        """data: rows with renewal_date in [start, end], renewal_date ascending."""
        ...


def raise_for_failure(error: RemoteFailure) -> None:
    """Turn the error half of a RemoteResponse into the matching exception."""
    if error.code == FAILURE_UNREACHABLE:
        raise ConfigurationError(f"Subscription store is unreachable: {error.message}")
    raise RemoteError(error.message)
