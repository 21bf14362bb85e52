"""
Webhook proxy actions — server-side entry point for third-party
callbacks and calls that need server credentials.

Both actions are placeholders that acknowledge the request.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

ACTION_PROCESS_WEBHOOK = "process_webhook"
ACTION_EXTERNAL_API_CALL = "external_api_call"


class UnknownWebhookAction(ValueError):
    pass


def handle_webhook(action: str, data: Any = None) -> dict:
    """
    Raises:
        UnknownWebhookAction: action is not one of the supported ones
    """
    if action == ACTION_PROCESS_WEBHOOK:
        logger.info("Processing webhook: %s", data)
        return {"success": True, "message": "Webhook processed"}

    if action == ACTION_EXTERNAL_API_CALL:
        logger.info("External API call requested")
        return {"success": True, "data": "API call successful"}

    raise UnknownWebhookAction("Invalid action")
