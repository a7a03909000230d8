"""
storefront/api/webhook.py

Purpose: Telegram webhook endpoint

- Receives Bot API updates (JSON)
- Checks the webhook secret header when one is configured
- Normalizes the update and passes control to the dispatcher
- Always answers 200 so Telegram does not redeliver
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from storefront.core.config import settings
from storefront.core.exceptions import AuthenticationError
from storefront.core.logging import get_logger
from storefront.flow.dispatcher import Dispatcher, dispatch_update, get_dispatcher
from storefront.schemas.replies import MessageSink
from storefront.schemas.response import WebhookAck, WebhookStatus
from storefront.schemas.updates import parse_telegram_update
from storefront.services.telegram_service import telegram_sink

logger = get_logger(__name__)
router = APIRouter()


def get_sink() -> MessageSink:
    return telegram_sink


def verify_secret(
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None)
) -> None:
    """
    Rejects calls that do not carry the configured webhook secret.

    Raises:
        AuthenticationError: If a secret is configured and the header differs
    """
    expected = settings.TELEGRAM_WEBHOOK_SECRET
    if not expected:
        return
    if not x_telegram_bot_api_secret_token or not hmac.compare_digest(
        x_telegram_bot_api_secret_token, expected
    ):
        logger.warning("🔒 Webhook call with a missing or wrong secret token")
        raise AuthenticationError("Invalid webhook secret")


@router.post("/webhook", dependencies=[Depends(verify_secret)])
async def webhook_handler(
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    sink: MessageSink = Depends(get_sink),
) -> WebhookAck:
    """
    Telegram webhook endpoint.

    Unknown update types and malformed payloads are acknowledged and dropped.
    """
    try:
        update = await request.json()
    except ValueError:
        logger.error("Failed to parse JSON payload")
        return WebhookAck()

    if not isinstance(update, dict):
        logger.warning("Ignoring non-object webhook payload")
        return WebhookAck()

    try:
        event = parse_telegram_update(update)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Failed to parse update {update.get('update_id')}: {e}")
        return WebhookAck()

    if event is None:
        logger.debug(f"Ignoring update {update.get('update_id')} (unsupported type)")
        return WebhookAck()

    logger.info(f"📨 Update {update.get('update_id')}: {event.kind.value} from {event.chat_id}")

    try:
        await dispatch_update(event, sink, dispatcher)
    except Exception as e:
        # Delivery failures must not make Telegram redeliver the update
        logger.error(f"Webhook error: {e}", exc_info=True)

    return WebhookAck()


@router.get("/webhook", response_model=WebhookStatus)
async def webhook_status() -> WebhookStatus:
    """
    Webhook status endpoint
    """
    return WebhookStatus(secret_required=bool(settings.TELEGRAM_WEBHOOK_SECRET))
