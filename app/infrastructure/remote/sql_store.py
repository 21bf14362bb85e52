"""
Hosted store adapter backed by SQLAlchemy.

SqlBackend plays the role of the backend-as-a-service: it owns the
database, enforces row-level ownership, issues access tokens and
publishes realtime events. SqlRemoteStoreClient is what one caller
(a browser tab, an HTTP request) holds: it remembers the current
session and talks to the backend on that session's behalf.
"""
import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.application.remote import (
    AUTH_SIGNED_IN, AUTH_SIGNED_OUT, AUTH_TOKEN_REFRESHED,
    FAILURE_AUTH, FAILURE_ERROR, FAILURE_UNREACHABLE,
    AuthSession, Identity, RemoteFailure, RemoteResponse, RemoteStoreClient,
)
from app.auth import (
    MIN_PASSWORD_LENGTH, get_user_by_email, hash_password, new_token,
    normalize_email, verify_password,
)
from app.config import Settings, get_settings
from app.infrastructure.db.models import AuthSessionModel, SubscriptionModel, User
from app.infrastructure.remote.change_feed import ChangeFeed, auth_topic, subscriptions_topic

logger = logging.getLogger(__name__)

WRITABLE_COLUMNS = ("name", "price", "cycle", "renewal_date", "category", "notes")

RLS_VIOLATION = 'new row violates row-level security policy for table "subscriptions"'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _row_to_dict(m: SubscriptionModel) -> Dict[str, Any]:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "name": m.name,
        "price": m.price,
        "cycle": m.cycle,
        "renewal_date": m.renewal_date,
        "category": m.category,
        "notes": m.notes,
        "created_at": m.created_at,
    }


def _listing_order():
    # renewal_date asc nulls last, portable across dialects
    return (
        SubscriptionModel.renewal_date.is_(None),
        SubscriptionModel.renewal_date.asc(),
        SubscriptionModel.created_at.asc(),
    )


class SqlBackend:
    """
    Server side of the hosted store.

    Usage:
        backend = SqlBackend.from_settings()
        client = backend.client()
        client.sign_in("me@example.com", "secret")
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        session_ttl_hours: int = 168,
        require_email_confirmation: bool = False,
        feed: Optional[ChangeFeed] = None,
    ):
        self.session_factory = session_factory
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.require_email_confirmation = require_email_confirmation
        self.feed = feed or ChangeFeed()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SqlBackend":
        """
        Raises:
            ConfigurationError: DATABASE_URL missing or invalid
        """
        from app.infrastructure.db.session import get_session_factory

        settings = settings or get_settings()
        return cls(
            get_session_factory(),
            session_ttl_hours=settings.AUTH_SESSION_TTL_HOURS,
            require_email_confirmation=settings.AUTH_REQUIRE_EMAIL_CONFIRMATION,
        )

    def client(self, access_token: Optional[str] = None) -> "SqlRemoteStoreClient":
        return SqlRemoteStoreClient(self, access_token)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def run(self, operation: Callable[[Session], Any]) -> RemoteResponse:
        """
        Run `operation(db)` in its own session and wrap the outcome.

        Database errors never escape: they come back as the error half
        of the response, the way the hosted API reports them.
        """
        try:
            with self.session_factory() as db:
                try:
                    return RemoteResponse(data=operation(db))
                except SQLAlchemyError:
                    db.rollback()
                    raise
        except _Rejected as exc:
            return RemoteResponse(error=RemoteFailure(exc.message, exc.code))
        except OperationalError as exc:
            logger.error("Store unreachable: %s", exc)
            return RemoteResponse(error=RemoteFailure(str(exc.orig or exc), FAILURE_UNREACHABLE))
        except IntegrityError as exc:
            return RemoteResponse(error=RemoteFailure(str(exc.orig or exc), FAILURE_ERROR))
        except SQLAlchemyError as exc:
            logger.error("Store error: %s", exc)
            return RemoteResponse(error=RemoteFailure(str(exc), FAILURE_ERROR))

    def load_session(self, db: Session, access_token: str) -> Optional[AuthSession]:
        row = db.get(AuthSessionModel, access_token)
        if row is None or row.revoked or row.expires_at <= _utcnow():
            return None
        user = db.get(User, row.user_id)
        if user is None:
            return None
        return AuthSession(
            access_token=row.access_token,
            user=Identity(user_id=user.id, email=user.email),
            expires_at=row.expires_at,
        )

    def issue_session(self, db: Session, user: User) -> AuthSession:
        row = AuthSessionModel(
            access_token=new_token(),
            user_id=user.id,
            expires_at=_utcnow() + self.session_ttl,
        )
        db.add(row)
        db.flush()
        return AuthSession(
            access_token=row.access_token,
            user=Identity(user_id=user.id, email=user.email),
            expires_at=row.expires_at,
        )

    # ------------------------------------------------------------------
    # Service-role operations (no row-level restriction)
    # ------------------------------------------------------------------

    def select_renewing_between(self, start: date, end: date) -> RemoteResponse:
        """All users' subscriptions with renewal_date in [start, end]."""
        def op(db: Session):
            rows = db.query(SubscriptionModel).filter(
                SubscriptionModel.renewal_date.isnot(None),
                SubscriptionModel.renewal_date >= start,
                SubscriptionModel.renewal_date <= end,
            ).order_by(*_listing_order()).all()
            return [_row_to_dict(r) for r in rows]

        return self.run(op)

    def confirm_email(self, token: str) -> RemoteResponse:
        """Mark the user owning `token` as confirmed. data: Identity"""
        def op(db: Session):
            user = db.query(User).filter(User.confirmation_token == token).first() if token else None
            if user is None:
                raise _Rejected("Invalid or expired confirmation link", FAILURE_AUTH)
            user.email_confirmed = True
            user.confirmation_token = None
            db.commit()
            return Identity(user_id=user.id, email=user.email)

        return self.run(op)

    def revoke_all_sessions(self, user_id: str) -> RemoteResponse:
        def op(db: Session):
            count = db.query(AuthSessionModel).filter(
                AuthSessionModel.user_id == user_id,
                AuthSessionModel.revoked == False,  # noqa: E712
            ).update({"revoked": True})
            db.commit()
            return count

        response = self.run(op)
        if response.ok:
            self.feed.publish(auth_topic(user_id), AUTH_SIGNED_OUT, user_id)
        return response


class _Rejected(Exception):
    """Request refused by the backend (bad credentials, RLS, ...)."""

    def __init__(self, message: str, code: str = FAILURE_ERROR):
        super().__init__(message)
        self.message = message
        self.code = code


class SqlRemoteStoreClient(RemoteStoreClient):
    """
    Per-caller client. Holds at most one session; signing out anywhere
    (another client of the same user) clears it here too.
    """

    def __init__(self, backend: SqlBackend, access_token: Optional[str] = None):
        self._backend = backend
        self._lock = threading.Lock()
        self._session: Optional[AuthSession] = None
        self._backend_handle = None
        self._local = ChangeFeed()
        # Set when the stored token could not be checked (not when it was rejected)
        self.load_error: Optional[RemoteFailure] = None

        if access_token:
            response = backend.run(lambda db: backend.load_session(db, access_token))
            if response.error:
                logger.warning("Could not restore session: %s", response.error.message)
                self.load_error = response.error
            elif response.data is not None:
                self._adopt(response.data)

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    def _adopt(self, session: Optional[AuthSession]) -> None:
        """Replace the current session and follow the new user's auth events."""
        with self._lock:
            self._session = session
            old_handle = self._backend_handle
            self._backend_handle = None
            if session is not None:
                self._backend_handle = self._backend.feed.subscribe(
                    auth_topic(session.user.user_id), self._on_backend_auth_event,
                )
        if old_handle is not None:
            old_handle.unsubscribe()

    def _on_backend_auth_event(self, event: str, user_id: str) -> None:
        if event != AUTH_SIGNED_OUT:
            return
        current = self._session
        if current is None or current.user.user_id != user_id:
            return
        self._adopt(None)
        self._local.publish("auth", AUTH_SIGNED_OUT, None)

    def _auth_uid(self) -> Optional[str]:
        session = self.get_session()
        return session.user.user_id if session else None

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def get_session(self) -> Optional[AuthSession]:
        session = self._session
        if session is not None and session.expires_at <= _utcnow():
            logger.info("Session expired for user %s", session.user.user_id)
            self._adopt(None)
            self._local.publish("auth", AUTH_SIGNED_OUT, None)
            return None
        return session

    def on_auth_change(self, callback):
        return self._local.subscribe("auth", callback)

    def sign_up(self, email: str, password: str) -> RemoteResponse:
        backend = self._backend
        email = normalize_email(email)

        def op(db: Session):
            if not email or "@" not in email:
                raise _Rejected("Unable to validate email address: invalid format", FAILURE_AUTH)
            if len(password or "") < MIN_PASSWORD_LENGTH:
                raise _Rejected(
                    f"Password should be at least {MIN_PASSWORD_LENGTH} characters", FAILURE_AUTH,
                )
            if get_user_by_email(db, email) is not None:
                raise _Rejected("User already registered", FAILURE_AUTH)

            user = User(email=email, password_hash=hash_password(password))
            if backend.require_email_confirmation:
                user.email_confirmed = False
                user.confirmation_token = new_token()
            db.add(user)
            db.flush()

            session = None
            if user.email_confirmed:
                session = backend.issue_session(db, user)
            else:
                logger.info("Confirmation pending for %s (token issued)", email)
            db.commit()
            return {"user": Identity(user_id=user.id, email=user.email), "session": session}

        response = backend.run(op)
        if response.ok and response.data["session"] is not None:
            self._adopt(response.data["session"])
            self._local.publish("auth", AUTH_SIGNED_IN, response.data["session"])
        return response

    def sign_in(self, email: str, password: str) -> RemoteResponse:
        backend = self._backend

        def op(db: Session):
            user = get_user_by_email(db, email)
            if user is None or not verify_password(password or "", user.password_hash):
                raise _Rejected("Invalid login credentials", FAILURE_AUTH)
            if not user.email_confirmed:
                raise _Rejected("Email not confirmed", FAILURE_AUTH)
            session = backend.issue_session(db, user)
            db.commit()
            return {"user": session.user, "session": session}

        response = backend.run(op)
        if response.ok:
            self._adopt(response.data["session"])
            self._local.publish("auth", AUTH_SIGNED_IN, response.data["session"])
        return response

    def sign_out(self) -> RemoteResponse:
        session = self._session
        if session is None:
            return RemoteResponse()
        # Global scope: every session of this user is revoked and every
        # client following the user hears SIGNED_OUT, this one included.
        response = self._backend.revoke_all_sessions(session.user.user_id)
        if not response.ok:
            return RemoteResponse(error=response.error)
        return RemoteResponse()

    def refresh_session(self) -> RemoteResponse:
        """Rotate the access token. data: the new AuthSession"""
        session = self._session
        if session is None:
            return RemoteResponse(error=RemoteFailure("Auth session missing", FAILURE_AUTH))
        backend = self._backend

        def op(db: Session):
            row = db.get(AuthSessionModel, session.access_token)
            user = db.get(User, session.user.user_id)
            if row is None or row.revoked or user is None:
                raise _Rejected("Invalid refresh token", FAILURE_AUTH)
            row.revoked = True
            fresh = backend.issue_session(db, user)
            db.commit()
            return fresh

        response = backend.run(op)
        if response.ok:
            self._adopt(response.data)
            self._local.publish("auth", AUTH_TOKEN_REFRESHED, response.data)
        return response

    def close(self) -> None:
        """Stop following backend auth events."""
        with self._lock:
            handle = self._backend_handle
            self._backend_handle = None
        if handle is not None:
            handle.unsubscribe()

    # ------------------------------------------------------------------
    # Subscriptions table (row-level security: user_id = auth uid)
    # ------------------------------------------------------------------

    def select_subscriptions(self, user_id: str) -> RemoteResponse:
        auth_uid = self._auth_uid()

        def op(db: Session) -> List[Dict[str, Any]]:
            if auth_uid is None or auth_uid != user_id:
                return []
            rows = db.query(SubscriptionModel).filter(
                SubscriptionModel.user_id == user_id,
            ).order_by(*_listing_order()).all()
            return [_row_to_dict(r) for r in rows]

        return self._backend.run(op)

    def insert_subscription(self, row: Dict[str, Any]) -> RemoteResponse:
        auth_uid = self._auth_uid()

        def op(db: Session) -> Dict[str, Any]:
            if auth_uid is None or row.get("user_id") != auth_uid:
                raise _Rejected(RLS_VIOLATION, FAILURE_AUTH)
            unknown = set(row) - set(WRITABLE_COLUMNS) - {"user_id"}
            if unknown:
                raise _Rejected(f"Unknown columns: {', '.join(sorted(unknown))}")
            model = SubscriptionModel(**row)
            db.add(model)
            db.commit()
            db.refresh(model)
            return _row_to_dict(model)

        response = self._backend.run(op)
        if response.ok:
            self._publish_change("INSERT", response.data)
        return response

    def update_subscription(self, sub_id: str, user_id: str, changes: Dict[str, Any]) -> RemoteResponse:
        auth_uid = self._auth_uid()

        def op(db: Session) -> List[Dict[str, Any]]:
            unknown = set(changes) - set(WRITABLE_COLUMNS)
            if unknown:
                raise _Rejected(f"Cannot update columns: {', '.join(sorted(unknown))}")
            if auth_uid is None:
                return []
            rows = db.query(SubscriptionModel).filter(
                SubscriptionModel.id == sub_id,
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.user_id == auth_uid,
            ).all()
            for model in rows:
                for key, value in changes.items():
                    setattr(model, key, value)
            db.commit()
            for model in rows:
                db.refresh(model)
            return [_row_to_dict(m) for m in rows]

        response = self._backend.run(op)
        if response.ok:
            for record in response.data:
                self._publish_change("UPDATE", record)
        return response

    def delete_subscription(self, sub_id: str, user_id: str) -> RemoteResponse:
        auth_uid = self._auth_uid()

        def op(db: Session) -> List[Dict[str, Any]]:
            if auth_uid is None:
                return []
            rows = db.query(SubscriptionModel).filter(
                SubscriptionModel.id == sub_id,
                SubscriptionModel.user_id == user_id,
                SubscriptionModel.user_id == auth_uid,
            ).all()
            deleted = [_row_to_dict(m) for m in rows]
            for model in rows:
                db.delete(model)
            db.commit()
            return deleted

        response = self._backend.run(op)
        if response.ok:
            for record in response.data:
                self._publish_change("DELETE", record)
        return response

    def _publish_change(self, event_type: str, record: Dict[str, Any]) -> None:
        payload = {"type": event_type, "table": "subscriptions"}
        payload["old_record" if event_type == "DELETE" else "record"] = record
        self._backend.feed.publish(subscriptions_topic(record["user_id"]), payload)

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def subscribe_changes(self, user_id: str, callback):
        return self._backend.feed.subscribe(subscriptions_topic(user_id), callback)
