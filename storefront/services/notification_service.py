"""
storefront/services/notification_service.py

Purpose: Messages to chats other than the sender

- One message per new order to every ADMIN
- Customer notice when staff change an order's status
"""

from typing import List

from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.models.order import STATUS_LABELS, Order
from storefront.models.user import User
from storefront.schemas.replies import OutboundMessage
from storefront.services.user_service import list_admins
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_items, format_money
from storefront.utils.keyboards import button

logger = get_logger(__name__)


async def new_order_notifications(orders: List[Order], customer: User) -> List[OutboundMessage]:
    """
    Builds admin notifications for freshly placed orders.

    Args:
        orders: Orders created by one checkout
        customer: Who placed them

    Returns:
        len(admins) * len(orders) messages
    """
    admins = await list_admins()
    if not admins:
        logger.warning("No ADMIN users to notify about new orders")
        return []

    messages = []
    for order in orders:
        text = c.NEW_ORDER_NOTIFICATION.format(
            order_id=order.id,
            customer=esc(customer.display_name),
            phone=esc(order.phone),
            address=esc(order.address),
            comment=esc(order.comment or "-"),
            items=format_items(order.items),
            total=format_money(order.total),
        )
        keyboard = [[button("📋 Open order", Verb.ORDER_DETAILS, order.id)]]
        for admin in admins:
            messages.append(OutboundMessage(chat_id=admin.chat_id, text=text, inline_keyboard=keyboard))

    logger.info(f"🔔 {len(messages)} admin notification(s) for orders {[o.id for o in orders]}")
    return messages


def status_change_notification(order: Order) -> OutboundMessage:
    return OutboundMessage(
        chat_id=order.user_id,
        text=c.ORDER_STATUS_CHANGED_MESSAGE.format(
            order_id=order.id, status=STATUS_LABELS[order.status]
        ),
        inline_keyboard=[[button("📋 Details", Verb.ORDER_DETAILS, order.id)]],
    )
