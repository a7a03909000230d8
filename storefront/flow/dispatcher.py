"""
storefront/flow/dispatcher.py

Purpose: Central update dispatcher

- Receives normalized events from the webhook
- Serializes events per user (one lock per chat id)
- Escape tokens reset any wizard first
- Routes to the wizard that owns the user's step, then to the handler chain
- Maps typed errors to replies; never lets an exception escape
- Delivers the reply through the message sink
"""

from typing import Dict, List, Optional, Sequence

from storefront.core.exceptions import (
    AuthorizationError,
    CallbackDecodeError,
    InsufficientStockError,
    ResourceNotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.core.logging import LogContext, get_logger
from storefront.flow.callbacks import VERB_ARGS, CallbackAction, Verb, decode
from storefront.flow.handlers.admin import AdminHandler
from storefront.flow.handlers.base import Handler, HandlerContext, WizardHandler, main_menu_reply
from storefront.flow.handlers.cart import CartHandler
from storefront.flow.handlers.catalog import CatalogHandler
from storefront.flow.handlers.categories import CategoriesHandler
from storefront.flow.handlers.checkout import CheckoutHandler
from storefront.flow.handlers.menu import CommandHandler, FallbackHandler, MenuHandler
from storefront.flow.handlers.orders import OrdersHandler
from storefront.flow.handlers.products import ProductsHandler
from storefront.flow.handlers.shop import ShopSettingsHandler
from storefront.flow.states import STATE_METADATA, ConversationState
from storefront.models.user import User
from storefront.schemas.replies import MessageSink, Reply
from storefront.schemas.updates import EventKind, InboundEvent
from storefront.services.locks import user_locks
from storefront.services.session_service import expire_if_idle, get_state, reset
from storefront.services.user_service import get_or_create_user
from storefront.utils import constants as c
from storefront.utils.formatting import esc

logger = get_logger(__name__)

# Event kinds a wizard step consumes without being asked
STEP_INPUT_KINDS = frozenset({EventKind.TEXT, EventKind.COMMAND, EventKind.PHOTO, EventKind.CONTACT})


def default_handlers() -> List[Handler]:
    """
    The handler chain, in priority order. First match wins.
    """
    return [
        CommandHandler(),
        MenuHandler(),
        CatalogHandler(),
        CartHandler(),
        CheckoutHandler(),
        OrdersHandler(),
        AdminHandler(),
        ProductsHandler(),
        CategoriesHandler(),
        ShopSettingsHandler(),
        FallbackHandler(),
    ]


class Dispatcher:
    """
    Routes inbound events to handlers.

    Construction fails if two handlers claim the same callback verb, if a verb
    is left unclaimed, or if a wizard step has no (or more than one) owner.
    """

    def __init__(self, handlers: Optional[Sequence[Handler]] = None):
        self.handlers: List[Handler] = list(handlers if handlers is not None else default_handlers())
        self.verb_owners: Dict[Verb, Handler] = self._index_verbs()
        self.step_owners: Dict[ConversationState, WizardHandler] = self._index_steps()

    def _index_verbs(self) -> Dict[Verb, Handler]:
        owners: Dict[Verb, Handler] = {}
        for handler in self.handlers:
            for verb in handler.verbs:
                if verb in owners:
                    raise ValueError(
                        f"Callback verb {verb.value!r} claimed by both "
                        f"{owners[verb].name} and {handler.name}"
                    )
                owners[verb] = handler

        missing = set(VERB_ARGS) - set(owners)
        if missing:
            raise ValueError(f"Callback verbs without a handler: {sorted(v.value for v in missing)}")
        return owners

    def _index_steps(self) -> Dict[ConversationState, WizardHandler]:
        owners: Dict[ConversationState, WizardHandler] = {}
        for handler in self.handlers:
            if not isinstance(handler, WizardHandler):
                continue
            for step in handler.states:
                if step in owners:
                    raise ValueError(
                        f"Step {step.value} owned by both {owners[step].name} and {handler.name}"
                    )
                owners[step] = handler

        missing = set(STATE_METADATA) - set(owners) - {ConversationState.NORMAL}
        if missing:
            raise ValueError(f"Steps without a wizard handler: {sorted(s.value for s in missing)}")
        return owners

    # ==============================================
    # DISPATCH
    # ==============================================

    async def dispatch(self, event: InboundEvent) -> Reply:
        """
        Handles one inbound event.

        Args:
            event: Normalized update

        Returns:
            Reply to deliver; ``handled`` is False when nothing claimed the event
        """
        async with user_locks.hold(event.chat_id):
            with LogContext(chat_id=event.chat_id):
                try:
                    user = await get_or_create_user(event.chat_id, event.first_name, event.username)
                    return await self._dispatch_locked(event, user)
                except Exception as e:
                    # Storage failures outside a handler (user load, error recovery)
                    logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
                    return Reply.text(c.GENERIC_ERROR_MESSAGE)

    async def _dispatch_locked(self, event: InboundEvent, user: User) -> Reply:
        notice: Optional[Reply] = None
        if await expire_if_idle(user):
            notice = Reply.text(c.SESSION_EXPIRED_MESSAGE)

        action: Optional[CallbackAction] = None
        if event.kind == EventKind.CALLBACK:
            try:
                action = decode(event.callback_data)
            except CallbackDecodeError as e:
                logger.warning(f"⚠️ Unhandled callback: {e.message}", extra={"token": e.token})
                return Reply.unhandled()

        state = get_state(user)
        ctx = HandlerContext(event=event, user=user, state=state, action=action)

        with LogContext(state=str(state), verb=action.verb.value if action else None):
            reply = await self._route_safely(ctx)

        if notice:
            reply = notice.extend(reply)
        return reply

    async def _route_safely(self, ctx: HandlerContext) -> Reply:
        try:
            return await self._route(ctx)

        except ResourceNotFoundError as e:
            aborted = not get_state(ctx.user).is_normal
            await reset(ctx.user, reason="not_found")
            template = c.WIZARD_ABORTED_MESSAGE if aborted else c.NOT_FOUND_MESSAGE
            logger.info(f"Not found: {e.message}")
            return main_menu_reply(ctx.user, template.format(what=esc(e.message)))

        except AuthorizationError:
            return Reply.text(c.ACCESS_DENIED_MESSAGE)

        except InsufficientStockError as e:
            return main_menu_reply(ctx.user, c.STOCK_CHANGED_MESSAGE.format(reason=esc(e.message)))

        except ValidationError as e:
            return Reply.text(f"❌ {esc(e.message)}")

        except StorefrontError as e:
            logger.error(f"❌ {e.code}: {e.message}")
            return Reply.text(c.GENERIC_ERROR_MESSAGE)

        except Exception as e:
            logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
            return Reply.text(c.GENERIC_ERROR_MESSAGE)

    async def _route(self, ctx: HandlerContext) -> Reply:
        event = ctx.event

        if self._is_escape(event):
            was_active = not ctx.state.is_normal
            await reset(ctx.user, reason="escape")
            if event.command != c.RESTART_COMMAND:
                text = c.WIZARD_CANCELLED_MESSAGE if was_active else c.MAIN_MENU_MESSAGE
                return main_menu_reply(ctx.user, text)
            # /start also shows the welcome screen
            ctx.state = get_state(ctx.user)

        if not ctx.state.is_normal:
            owner = self.step_owners.get(ctx.state.step)
            if owner is not None:
                if ctx.is_callback and owner.accepts_callback(ctx):
                    logger.info(f"🧭 {ctx.verb.value} -> {owner.name} (step {ctx.state})")
                    return await owner.handle_step(ctx)
                if event.kind in STEP_INPUT_KINDS:
                    logger.info(f"🧭 {event.kind.value} -> {owner.name} (step {ctx.state})")
                    return await owner.handle_step(ctx)

        for handler in self.handlers:
            if handler.can_handle(ctx):
                logger.info(f"🧭 {event.kind.value} -> {handler.name}")
                return await handler.handle(ctx)

        logger.info(f"Unhandled {event.kind.value} event")
        return Reply.unhandled()

    @staticmethod
    def _is_escape(event: InboundEvent) -> bool:
        if event.kind == EventKind.COMMAND:
            return event.command in c.ESCAPE_TOKENS
        if event.kind == EventKind.TEXT:
            return event.clean_text.casefold() in c.ESCAPE_TOKENS
        return False


async def dispatch_update(event: InboundEvent, sink: MessageSink, dispatcher: Optional[Dispatcher] = None) -> Reply:
    """
    Dispatches an event and delivers the reply.

    Args:
        event: Normalized update
        sink: Transport that delivers the reply
        dispatcher: Dispatcher to use (the module default when omitted)

    Returns:
        The reply that was delivered
    """
    reply = await (dispatcher or get_dispatcher()).dispatch(event)

    if reply.messages or reply.notifications or event.callback_id:
        await sink.send_reply(event.chat_id, reply, callback_id=event.callback_id)
    return reply


_dispatcher: Optional[Dispatcher] = None


def get_dispatcher() -> Dispatcher:
    """Lazily built module dispatcher (FastAPI dependency)."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher()
    return _dispatcher
