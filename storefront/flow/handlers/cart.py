"""
storefront/flow/handlers/cart.py

Handles: cart view and line edits

- cart: show lines, total and the per-line ➖ / ➕ / 🗑 buttons
- cart_minus / cart_plus / cart_remove take a cart line id
- cart_clear empties the cart
"""

from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import Handler, HandlerContext, answer
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.services import cart_service
from storefront.utils import constants as c
from storefront.utils.formatting import format_cart, format_money
from storefront.utils.keyboards import button, cart_keyboard

logger = get_logger(__name__)


async def show_cart(user: User) -> Reply:
    cart = await cart_service.get_cart(user.chat_id)
    if cart.is_empty:
        return Reply.text(
            c.CART_EMPTY_MESSAGE,
            inline_keyboard=[[button("🛍 Catalog", Verb.CATALOG)]],
        )

    text = "\n\n".join([
        c.CART_HEADER,
        format_cart(cart),
        c.CART_TOTAL.format(total=format_money(cart.total)),
    ])
    return Reply.text(text, inline_keyboard=cart_keyboard(cart))


class CartHandler(Handler):
    name = "cart"
    verbs = frozenset({
        Verb.CART,
        Verb.CART_MINUS,
        Verb.CART_PLUS,
        Verb.CART_REMOVE,
        Verb.CART_CLEAR,
    })

    async def handle(self, ctx: HandlerContext) -> Reply:
        verb = ctx.verb
        user_id = ctx.chat_id

        if verb == Verb.CART:
            return await show_cart(ctx.user)

        if verb == Verb.CART_CLEAR:
            await cart_service.clear_cart(user_id)
            return answer(c.CART_CLEARED_MESSAGE, inline_keyboard=[[button("🛍 Catalog", Verb.CATALOG)]])

        line_id = ctx.action.id
        if verb == Verb.CART_REMOVE:
            changed = await cart_service.remove_line(user_id, line_id)
            notice = c.CART_LINE_REMOVED_MESSAGE if changed else c.STALE_BUTTON_MESSAGE
        else:
            delta = 1 if verb == Verb.CART_PLUS else -1
            changed = await cart_service.change_quantity(user_id, line_id, delta)
            notice = None if changed else c.CART_UPDATE_FAILED_MESSAGE

        reply = await show_cart(ctx.user)
        if notice:
            reply.callback_answer = notice
        return reply
