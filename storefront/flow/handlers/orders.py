"""
storefront/flow/handlers/orders.py

Handles: order lists, details and staff status changes

- my_orders / admin_orders: paged lists
- order_details: one order (customers see only their own)
- accept_order / complete_order / admin_cancel_order: lifecycle moves,
  the customer is notified of every successful change
"""

from storefront.core.config import settings
from storefront.core.logging import LogContext, get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import Handler, HandlerContext, answer
from storefront.models.order import STATUS_LABELS
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.services import order_service
from storefront.services.notification_service import status_change_notification
from storefront.services.user_service import get_user, require_staff
from storefront.utils import constants as c
from storefront.utils.formatting import format_order
from storefront.utils.keyboards import button, order_actions_keyboard, order_list_keyboard

logger = get_logger(__name__)

_ACTIONS = {
    Verb.ACCEPT_ORDER: (order_service.accept_order, "accepted"),
    Verb.COMPLETE_ORDER: (order_service.complete_order, "completed"),
    Verb.ADMIN_CANCEL_ORDER: (order_service.cancel_order, "cancelled"),
}


async def show_user_orders(user: User, page: int = 0) -> Reply:
    listing = await order_service.list_user_orders(user.chat_id, page, settings.ADMIN_PAGE_SIZE)
    if not listing.total:
        return Reply.text(c.NO_ORDERS_MESSAGE, inline_keyboard=[[button("🛍 Catalog", Verb.CATALOG)]])
    return Reply.text(
        c.ORDERS_HEADER.format(page=listing.page + 1, pages=listing.pages),
        inline_keyboard=order_list_keyboard(listing, Verb.MY_ORDERS, Verb.HOME),
    )


async def show_all_orders(user: User, page: int = 0) -> Reply:
    require_staff(user)
    listing = await order_service.list_orders(page, settings.ADMIN_PAGE_SIZE)
    if not listing.total:
        return Reply.text(c.ADMIN_NO_ORDERS_MESSAGE, inline_keyboard=[[button("⬅️ Admin", Verb.ADMIN)]])
    return Reply.text(
        c.ORDERS_HEADER.format(page=listing.page + 1, pages=listing.pages),
        inline_keyboard=order_list_keyboard(listing, Verb.ADMIN_ORDERS, Verb.ADMIN),
    )


async def _render_order(viewer: User, order) -> Reply:
    customer = None
    if viewer.is_staff:
        owner = await get_user(order.user_id)
        customer = owner.display_name if owner else str(order.user_id)
    return Reply.text(
        format_order(order, customer=customer),
        inline_keyboard=order_actions_keyboard(order, staff=viewer.is_staff),
    )


class OrdersHandler(Handler):
    name = "orders"
    verbs = frozenset({
        Verb.MY_ORDERS,
        Verb.ORDER_DETAILS,
        Verb.ADMIN_ORDERS,
        Verb.ACCEPT_ORDER,
        Verb.COMPLETE_ORDER,
        Verb.ADMIN_CANCEL_ORDER,
    })

    async def handle(self, ctx: HandlerContext) -> Reply:
        verb = ctx.verb

        if verb == Verb.MY_ORDERS:
            return await show_user_orders(ctx.user, ctx.action.page)

        if verb == Verb.ADMIN_ORDERS:
            return await show_all_orders(ctx.user, ctx.action.page)

        if verb == Verb.ORDER_DETAILS:
            order = await order_service.get_order_for(ctx.user, ctx.action.id)
            return await _render_order(ctx.user, order)

        return await self._transition(ctx)

    async def _transition(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        move, action = _ACTIONS[ctx.verb]
        order_id = ctx.action.id

        with LogContext(order_id=order_id):
            outcome = await move(ctx.user, order_id)

        if not outcome.success:
            return answer(c.ORDER_TRANSITION_FAILED_MESSAGE.format(
                order_id=order_id,
                status=STATUS_LABELS[outcome.order.status],
                action=action,
            ))

        reply = await _render_order(ctx.user, outcome.order)
        reply.callback_answer = f"Order #{order_id} {action}"
        reply.notifications.append(status_change_notification(outcome.order))
        return reply
