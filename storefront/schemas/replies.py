"""
storefront/schemas/replies.py

Purpose: Render instructions returned by handlers

- Button / OutboundMessage / Reply value objects
- MessageSink contract the transport implements
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class Button(BaseModel):
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None
    request_contact: bool = False


Keyboard = List[List[Button]]


class OutboundMessage(BaseModel):
    """
    One message to deliver. ``chat_id`` None means the chat that sent the update.
    """
    chat_id: Optional[int] = None
    text: str
    photo: Optional[str] = None
    inline_keyboard: Optional[Keyboard] = None
    reply_keyboard: Optional[Keyboard] = None
    remove_keyboard: bool = False
    parse_mode: Optional[str] = "HTML"


class Reply(BaseModel):
    """
    Everything a handler wants sent in response to one update.

    ``messages`` go to the sender in order; ``notifications`` go to other chats
    afterwards. ``handled`` is False only for the unhandled signal.
    """
    messages: List[OutboundMessage] = Field(default_factory=list)
    notifications: List[OutboundMessage] = Field(default_factory=list)
    handled: bool = True
    callback_answer: Optional[str] = None

    @classmethod
    def text(cls, text: str, **kwargs) -> "Reply":
        return cls(messages=[OutboundMessage(text=text, **kwargs)])

    @classmethod
    def unhandled(cls) -> "Reply":
        return cls(handled=False)

    def add(self, text: str, **kwargs) -> "Reply":
        self.messages.append(OutboundMessage(text=text, **kwargs))
        return self

    def extend(self, other: "Reply") -> "Reply":
        self.messages.extend(other.messages)
        self.notifications.extend(other.notifications)
        if other.callback_answer and not self.callback_answer:
            self.callback_answer = other.callback_answer
        return self

    def notify(self, chat_id: int, text: str, **kwargs) -> "Reply":
        self.notifications.append(OutboundMessage(chat_id=chat_id, text=text, **kwargs))
        return self


class MessageSink(ABC):
    """Transport that delivers replies to the chat platform."""

    @abstractmethod
    async def send_reply(self, chat_id: int, reply: Reply, callback_id: Optional[str] = None) -> int:
        """
        Delivers ``reply`` for an update from ``chat_id``.

        Returns:
            Number of messages delivered
        """
