"""
storefront/services/telegram_service.py

Purpose: Telegram Bot API message sending

- Implements the MessageSink contract over sendMessage / sendPhoto
- Answers callback queries so the client stops its spinner
- Sends multi-message replies one at a time, in order
- Honours a single retry_after on HTTP 429
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from storefront.core.config import settings
from storefront.core.exceptions import ExternalServiceError
from storefront.core.logging import get_logger
from storefront.schemas.replies import MessageSink, OutboundMessage, Reply
from storefront.utils.keyboards import reply_markup

logger = get_logger(__name__)

CAPTION_LIMIT = 1024


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decoded Bot API body; proxies answer errors with HTML, which decodes to {}."""
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        logger.warning(f"⚠️ Non-JSON Telegram response ({response.status_code}): {response.text[:100]!r}")
        return {}
    return body if isinstance(body, dict) else {}


class TelegramSink(MessageSink):
    """Service for sending chat messages via the Telegram Bot API"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.token = settings.TELEGRAM_BOT_TOKEN
        self.base_url = f"{settings.TELEGRAM_API_URL}/bot{self.token}"
        self.send_delay = settings.TELEGRAM_SEND_DELAY_SECONDS
        self._client = client

    def is_configured(self) -> bool:
        """Check if the bot token is set"""
        return bool(self.token)

    async def start(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.TELEGRAM_TIMEOUT_SECONDS)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Calls a Bot API method.

        Args:
            method: Bot API method name (e.g. "sendMessage")
            payload: JSON body

        Returns:
            The "result" field of the API response

        Raises:
            ExternalServiceError: On transport errors or non-OK responses
        """
        await self.start()
        url = f"{self.base_url}/{method}"

        for attempt in (1, 2):
            try:
                response = await self._client.post(url, json=payload)
            except httpx.TimeoutException as e:
                logger.error(f"Telegram API timeout on {method}")
                raise ExternalServiceError("Telegram API timeout", details={"method": method}) from e
            except httpx.HTTPError as e:
                logger.error(f"Telegram API transport error on {method}: {e}")
                raise ExternalServiceError("Telegram API unreachable", details={"method": method}) from e

            body = _json_body(response)

            if response.status_code == 429 and attempt == 1:
                retry_after = (body.get("parameters") or {}).get("retry_after", 1)
                logger.warning(f"⏳ Telegram rate limit on {method}, retrying in {retry_after}s")
                await asyncio.sleep(retry_after)
                continue

            if response.status_code != 200 or not body.get("ok"):
                logger.error(
                    f"❌ Telegram API error: {response.status_code} - {body.get('description')}"
                )
                raise ExternalServiceError(
                    f"Telegram API error: {response.status_code}",
                    details={"method": method, "description": body.get("description")}
                )
            return body.get("result", {})

        raise ExternalServiceError("Telegram API rate limited", details={"method": method})

    async def send_message(self, chat_id: int, message: OutboundMessage) -> Dict[str, Any]:
        markup = reply_markup(message)

        if message.photo:
            payload: Dict[str, Any] = {
                "chat_id": chat_id,
                "photo": message.photo,
                "caption": message.text[:CAPTION_LIMIT],
            }
            method = "sendPhoto"
        else:
            payload = {"chat_id": chat_id, "text": message.text}
            method = "sendMessage"

        if message.parse_mode:
            payload["parse_mode"] = message.parse_mode
        if markup:
            payload["reply_markup"] = markup

        logger.debug(f"📤 {method} to {chat_id}")
        return await self.call(method, payload)

    async def answer_callback(self, callback_id: str, text: Optional[str] = None):
        payload: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        await self.call("answerCallbackQuery", payload)

    async def send_reply(self, chat_id: int, reply: Reply, callback_id: Optional[str] = None) -> int:
        if not self.is_configured():
            logger.info(f"📬 Bot token not set; would send {len(reply.messages)} message(s) to {chat_id}")
            return 0

        if callback_id:
            try:
                await self.answer_callback(callback_id, reply.callback_answer)
            except ExternalServiceError as e:
                # Callback queries expire after a while; the messages still matter
                logger.warning(f"Could not answer callback query: {e.message}")

        delivered = 0
        outgoing = [(m.chat_id or chat_id, m) for m in reply.messages]
        outgoing += [(m.chat_id, m) for m in reply.notifications if m.chat_id]

        for index, (target, message) in enumerate(outgoing):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)
            try:
                await self.send_message(target, message)
                delivered += 1
            except ExternalServiceError as e:
                logger.error(f"Failed to deliver message to {target}: {e.message}")

        return delivered


# Singleton instance
telegram_sink = TelegramSink()
