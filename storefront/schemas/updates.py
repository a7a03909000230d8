"""
storefront/schemas/updates.py

Purpose: Inbound Telegram update schemas and parser

- Validates incoming updates from the Bot API webhook
- Normalizes message/callback/photo/contact updates into InboundEvent
- Ensures predictable request handling
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    COMMAND = "COMMAND"
    TEXT = "TEXT"
    CALLBACK = "CALLBACK"
    PHOTO = "PHOTO"
    CONTACT = "CONTACT"


class InboundEvent(BaseModel):
    """
    Normalized update format for internal processing
    """
    kind: EventKind
    chat_id: int = Field(..., description="Chat the update belongs to")
    text: Optional[str] = Field(default=None, description="Message text or photo caption")
    callback_data: Optional[str] = None
    callback_id: Optional[str] = None
    photo_file_id: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    username: Optional[str] = None
    message_id: Optional[int] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "kind": "TEXT",
                "chat_id": 123456789,
                "text": "🛍 Catalog",
                "first_name": "Jane",
                "message_id": 42
            }
        }
    }

    @property
    def command(self) -> Optional[str]:
        """"/start@shop_bot payload" -> "/start"."""
        if self.kind != EventKind.COMMAND or not self.text:
            return None
        head = self.text.strip().split(maxsplit=1)[0]
        return head.split("@", 1)[0].lower()

    @property
    def clean_text(self) -> str:
        return (self.text or "").strip()


def _sender(payload: Dict[str, Any]) -> Dict[str, Any]:
    return payload.get("from") or payload.get("chat") or {}


def parse_telegram_update(update: Dict[str, Any]) -> Optional[InboundEvent]:
    """
    Parses a Telegram Bot API update.

    Telegram format (JSON):
    {
        "update_id": 1,
        "message": {
            "message_id": 42,
            "chat": {"id": 123456789},
            "from": {"first_name": "Jane", "username": "jane"},
            "text": "/start"
        }
    }

    Args:
        update: Raw update JSON

    Returns:
        InboundEvent, or None for update types the bot ignores
    """
    callback = update.get("callback_query")
    if callback:
        message = callback.get("message") or {}
        chat = message.get("chat") or callback.get("from") or {}
        sender = callback.get("from") or {}
        return InboundEvent(
            kind=EventKind.CALLBACK,
            chat_id=chat["id"],
            callback_data=callback.get("data"),
            callback_id=callback.get("id"),
            first_name=sender.get("first_name"),
            username=sender.get("username"),
            message_id=message.get("message_id"),
        )

    message = update.get("message") or update.get("edited_message")
    if not message or "chat" not in message:
        return None

    sender = _sender(message)
    common = dict(
        chat_id=message["chat"]["id"],
        first_name=sender.get("first_name"),
        username=sender.get("username"),
        message_id=message.get("message_id"),
    )

    if message.get("contact"):
        return InboundEvent(
            kind=EventKind.CONTACT,
            phone=message["contact"].get("phone_number"),
            **common,
        )

    if message.get("photo"):
        # Sizes are ordered smallest first
        largest = message["photo"][-1]
        return InboundEvent(
            kind=EventKind.PHOTO,
            photo_file_id=largest.get("file_id"),
            text=message.get("caption"),
            **common,
        )

    text = message.get("text")
    if text is None:
        return None

    kind = EventKind.COMMAND if text.startswith("/") else EventKind.TEXT
    return InboundEvent(kind=kind, text=text, **common)
