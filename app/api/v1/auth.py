"""
Authentication routes (sign-up, login, logout, current session)
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.api.deps import SESSION_TOKEN_KEY, get_backend, get_session_context
from app.application.session_context import SessionContext
from app.infrastructure.remote.sql_store import SqlBackend


router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class CredentialsRequest(BaseModel):
    email: str
    password: str


def _identity_json(identity) -> dict | None:
    if identity is None:
        return None
    return {"id": identity.user_id, "email": identity.email}


def _remember(request: Request, context: SessionContext) -> None:
    if context.session is not None:
        request.session[SESSION_TOKEN_KEY] = context.session.access_token
    else:
        request.session.pop(SESSION_TOKEN_KEY, None)


@router.post("/signup")
def signup(
    request: Request,
    req: CredentialsRequest,
    context: SessionContext = Depends(get_session_context),
):
    """
    Register. With email confirmation on, the account is created but no
    session is started (status "pending_confirmation").
    """
    result = context.sign_up(req.email, req.password)
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=400)
    _remember(request, context)
    return {"status": result.status, "user": _identity_json(result.identity)}


@router.post("/login")
def login(
    request: Request,
    req: CredentialsRequest,
    context: SessionContext = Depends(get_session_context),
):
    result = context.sign_in(req.email, req.password)
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=401)
    _remember(request, context)
    return {"status": result.status, "user": _identity_json(result.identity)}


@router.post("/logout")
def logout(request: Request, context: SessionContext = Depends(get_session_context)):
    result = context.sign_out()
    request.session.clear()
    if not result.ok:
        return JSONResponse({"error": result.error}, status_code=502)
    return {"status": result.status}


@router.get("/session")
def current_session(context: SessionContext = Depends(get_session_context)):
    return {"state": context.state, "user": _identity_json(context.identity)}


@router.get("/confirm")
def confirm(token: str, backend: SqlBackend = Depends(get_backend)):
    """Email confirmation link target"""
    identity, error = backend.confirm_email(token)
    if error:
        return JSONResponse({"error": error.message}, status_code=400)
    return {"status": "confirmed", "user": _identity_json(identity)}
