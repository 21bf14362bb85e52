"""
FastAPI dependencies (hosted store client, session context, subscription store)

Each request gets its own client bound to the access token kept in the
signed session cookie; the context and store built on it are torn down
when the request ends, releasing their feed subscriptions.
"""
from datetime import date, datetime
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Request, status

from app.application.errors import (
    ConfigurationError, NotAuthenticated, NotFoundOrForbidden, RemoteError,
    SubscriptionError, ValidationError,
)
from app.application.remote import Identity, raise_for_failure
from app.application.session_context import SessionContext
from app.application.subscription_store import SubscriptionStore
from app.config import get_settings
from app.infrastructure.remote.sql_store import SqlBackend, SqlRemoteStoreClient

SESSION_TOKEN_KEY = "access_token"

_backend: SqlBackend | None = None


def get_backend() -> SqlBackend:
    """Process-wide hosted store backend (singleton)"""
    global _backend
    if _backend is None:
        try:
            _backend = SqlBackend.from_settings()
        except ConfigurationError as exc:
            raise to_http_exception(exc)
    return _backend


def get_client(request: Request, backend: SqlBackend = Depends(get_backend)) -> SqlRemoteStoreClient:
    """
    Raises:
        HTTPException(503/502): the stored session could not be checked
    """
    client = backend.client(request.session.get(SESSION_TOKEN_KEY))
    try:
        if client.load_error is not None:
            try:
                raise_for_failure(client.load_error)
            except SubscriptionError as exc:
                raise to_http_exception(exc)
        yield client
    finally:
        client.close()


def get_session_context(client: SqlRemoteStoreClient = Depends(get_client)) -> SessionContext:
    context = SessionContext(client).start()
    try:
        yield context
    finally:
        context.close()


def require_identity(context: SessionContext = Depends(get_session_context)) -> Identity:
    """
    Raises:
        HTTPException(401): not signed in
    """
    identity = context.identity
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return identity


def get_store(
    context: SessionContext = Depends(get_session_context),
    client: SqlRemoteStoreClient = Depends(get_client),
) -> SubscriptionStore:
    store = SubscriptionStore(context, client).start()
    try:
        yield store
    finally:
        store.close()


def get_loaded_store(store: SubscriptionStore = Depends(get_store)) -> SubscriptionStore:
    """
    Store whose snapshot actually loaded.

    Raises:
        HTTPException(503/502): the last reload failed
    """
    try:
        store.raise_if_failed()
    except SubscriptionError as exc:
        raise to_http_exception(exc)
    return store


def get_today() -> date:
    """Today's date in the configured timezone"""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()


_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (NotFoundOrForbidden, status.HTTP_404_NOT_FOUND),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (RemoteError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(exc: SubscriptionError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
