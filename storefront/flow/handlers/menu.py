"""
storefront/flow/handlers/menu.py

Handles: slash commands, reply-keyboard labels and the fallback

- /start shows the welcome message and the main menu
- /catalog, /cart, /orders, /info, /support, /admin, /help and the matching menu labels
- home: back to the main menu
- Anything nobody else claimed gets a hint and the main menu
"""

from typing import Awaitable, Callable, Dict

from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.admin import show_admin_panel
from storefront.flow.handlers.base import Handler, HandlerContext, main_menu_reply
from storefront.flow.handlers.cart import show_cart
from storefront.flow.handlers.catalog import show_categories
from storefront.flow.handlers.orders import show_user_orders
from storefront.flow.handlers.shop import show_info, show_support
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.schemas.updates import EventKind
from storefront.utils import constants as c
from storefront.utils.formatting import esc

logger = get_logger(__name__)

View = Callable[[User], Awaitable[Reply]]


async def _welcome(user: User) -> Reply:
    name = esc(user.first_name or "friend")
    return main_menu_reply(user, c.WELCOME_MESSAGE.format(name=name))


async def _help(user: User) -> Reply:
    return main_menu_reply(user, c.HELP_MESSAGE)


async def _admin(user: User) -> Reply:
    return show_admin_panel(user)


COMMANDS: Dict[str, View] = {
    c.RESTART_COMMAND: _welcome,
    "/help": _help,
    "/catalog": show_categories,
    "/cart": show_cart,
    "/orders": show_user_orders,
    "/info": show_info,
    "/support": show_support,
    "/admin": _admin,
}

LABELS: Dict[str, View] = {
    c.CATALOG_LABEL: show_categories,
    c.CART_LABEL: show_cart,
    c.MY_ORDERS_LABEL: show_user_orders,
    c.ADMIN_LABEL: _admin,
    c.HELP_LABEL: _help,
    c.INFO_LABEL: show_info,
    c.SUPPORT_LABEL: show_support,
}


class CommandHandler(Handler):
    name = "commands"

    def can_handle(self, ctx: HandlerContext) -> bool:
        return ctx.event.command in COMMANDS

    async def handle(self, ctx: HandlerContext) -> Reply:
        logger.info(f"⌨️ Command {ctx.event.command}")
        return await COMMANDS[ctx.event.command](ctx.user)


class MenuHandler(Handler):
    name = "menu"
    verbs = frozenset({Verb.HOME})

    def can_handle(self, ctx: HandlerContext) -> bool:
        if ctx.event.kind == EventKind.TEXT:
            return ctx.text in LABELS
        return super().can_handle(ctx)

    async def handle(self, ctx: HandlerContext) -> Reply:
        if ctx.verb == Verb.HOME:
            return main_menu_reply(ctx.user)
        return await LABELS[ctx.text](ctx.user)


class FallbackHandler(Handler):
    """Last link of the chain: free input nobody claimed."""

    name = "fallback"

    def can_handle(self, ctx: HandlerContext) -> bool:
        return not ctx.is_callback

    async def handle(self, ctx: HandlerContext) -> Reply:
        logger.info(f"🤷 Unrecognized {ctx.event.kind.value.lower()} input")
        return main_menu_reply(ctx.user, c.UNKNOWN_INPUT_MESSAGE)
