"""
storefront/flow/handlers/base.py

Purpose: Handler contract shared by every flow handler

- HandlerContext: the event, the loaded user, the decoded state and action
- Handler: can_handle / handle, plus the callback verbs it owns
- WizardHandler: additionally owns conversation steps
- commit_guard: resets the wizard if a commit blows up
"""

import re
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import FrozenSet, Optional

from storefront.core.logging import get_logger
from storefront.flow.callbacks import CallbackAction, Verb
from storefront.flow.states import ConversationState, State
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.schemas.updates import EventKind, InboundEvent
from storefront.services.session_service import reset
from storefront.utils import constants as c
from storefront.utils.keyboards import main_menu_keyboard

logger = get_logger(__name__)

_TAGS = re.compile(r"<[^>]+>")

# answerCallbackQuery limit
CALLBACK_ANSWER_LIMIT = 200


@dataclass
class HandlerContext:
    event: InboundEvent
    user: User
    state: State
    action: Optional[CallbackAction] = None

    @property
    def chat_id(self) -> int:
        return self.user.chat_id

    @property
    def text(self) -> str:
        return self.event.clean_text

    @property
    def verb(self) -> Optional[Verb]:
        return self.action.verb if self.action else None

    @property
    def is_callback(self) -> bool:
        return self.event.kind == EventKind.CALLBACK


class Handler(ABC):
    """
    One link of the dispatch chain.

    ``verbs`` are the callback verbs this handler owns; the dispatcher checks
    that no two handlers claim the same verb and that every verb is claimed.
    """

    name: str = "handler"
    verbs: FrozenSet[Verb] = frozenset()

    def can_handle(self, ctx: HandlerContext) -> bool:
        return ctx.action is not None and ctx.action.verb in self.verbs

    @abstractmethod
    async def handle(self, ctx: HandlerContext) -> Reply:
        """Handles an event this handler claimed via can_handle."""


class WizardHandler(Handler):
    """
    A handler that also owns conversation steps.

    While a user is parked on one of ``states``, text, photos and contact
    shares go to ``handle_step``. Callbacks go there only when
    ``accepts_callback`` says so.
    """

    states: FrozenSet[ConversationState] = frozenset()
    step_verbs: FrozenSet[Verb] = frozenset()

    def accepts_callback(self, ctx: HandlerContext) -> bool:
        return ctx.verb in self.step_verbs

    @abstractmethod
    async def handle_step(self, ctx: HandlerContext) -> Reply:
        """Consumes one input for the step the user is on."""


@asynccontextmanager
async def commit_guard(ctx: HandlerContext):
    """
    Wraps the commit of a wizard.

    Any exception raised inside resets the user to NORMAL before it
    propagates, so a failed commit never strands the user on a final step.
    """
    try:
        yield
    except Exception:
        logger.warning(f"Commit failed on {ctx.state}, resetting wizard", extra={"chat_id": ctx.chat_id})
        await reset(ctx.user, reason="commit_failed")
        raise


def main_menu_reply(user: User, text: str = c.MAIN_MENU_MESSAGE) -> Reply:
    return Reply.text(text, reply_keyboard=main_menu_keyboard(user))


def answer(text: str, **kwargs) -> Reply:
    """A short message that also answers the pending callback query."""
    reply = Reply.text(text, **kwargs)
    reply.callback_answer = _TAGS.sub("", text)[:CALLBACK_ANSWER_LIMIT]
    return reply
