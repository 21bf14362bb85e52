"""
Server-side handlers: cron-triggered renewal sync and webhook proxy.

Both answer any other HTTP method with 405 so that misrouted cron or
webhook calls are visible in their logs.
"""
import logging
import secrets
from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_backend, get_today
from app.application.errors import SubscriptionError
from app.application.renewal_sync import sync_renewals
from app.application.webhooks import UnknownWebhookAction, handle_webhook
from app.config import get_settings
from app.infrastructure.remote.sql_store import SqlBackend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["jobs"])

_ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _method_not_allowed() -> JSONResponse:
    return JSONResponse({"error": "Method not allowed"}, status_code=405)


def _authorized(request: Request) -> bool:
    secret = get_settings().CRON_SECRET
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return secrets.compare_digest(header.encode(), f"Bearer {secret}".encode())


@router.api_route("/sync-renewals", methods=_ANY_METHOD)
def sync_renewals_endpoint(
    request: Request,
    backend: SqlBackend = Depends(get_backend),
    today: date = Depends(get_today),
):
    """Subscriptions renewing in the next RENEWAL_WINDOW_DAYS days, for all users"""
    if request.method != "POST":
        return _method_not_allowed()
    if not _authorized(request):
        logger.warning("Rejected sync-renewals call: bad credentials")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        report = sync_renewals(backend, today, get_settings().RENEWAL_WINDOW_DAYS)
    except SubscriptionError as exc:
        return JSONResponse({"error": exc.message}, status_code=500)
    return report.to_dict()


@router.api_route("/webhook-proxy", methods=_ANY_METHOD)
async def webhook_proxy(request: Request):
    if request.method != "POST":
        return _method_not_allowed()

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Invalid action"}, status_code=400)

    try:
        return handle_webhook(body.get("action"), body.get("data"))
    except UnknownWebhookAction as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
