"""
storefront/utils/keyboards.py

Purpose: Keyboard builders

- Constructs reply keyboards (menu labels) and inline keyboards (callback tokens)
- Converts keyboards into Bot API reply_markup payloads
"""

from typing import Any, Dict, List, Optional, Sequence

from storefront.flow.callbacks import Verb, encode
from storefront.models.cart import Cart
from storefront.models.catalog import Category, Product
from storefront.models.order import Order, OrderStatus
from storefront.models.page import Page
from storefront.models.user import User
from storefront.schemas.replies import Button, Keyboard, OutboundMessage
from storefront.utils import constants as c
from storefront.utils.formatting import format_order_line

MAX_BUTTON_TEXT = 64


def button(text: str, verb: Verb, *args) -> Button:
    """
    Creates an inline button carrying a callback token.

    Args:
        text: Button label (truncated to 64 chars)
        verb: Callback verb
        *args: Verb arguments

    Returns:
        Button
    """
    if len(text) > MAX_BUTTON_TEXT:
        text = text[:MAX_BUTTON_TEXT - 1] + "…"
    return Button(text=text, callback_data=encode(verb, *args))


def main_menu_keyboard(user: User) -> Keyboard:
    rows = [
        [Button(text=c.CATALOG_LABEL), Button(text=c.CART_LABEL)],
        [Button(text=c.MY_ORDERS_LABEL), Button(text=c.HELP_LABEL)],
        [Button(text=c.INFO_LABEL), Button(text=c.SUPPORT_LABEL)],
    ]
    if user.is_staff:
        rows.append([Button(text=c.ADMIN_LABEL)])
    return rows


def cancel_keyboard() -> Keyboard:
    return [[Button(text=c.CANCEL_LABEL)]]


def skip_cancel_keyboard() -> Keyboard:
    return [[Button(text=c.SKIP_LABEL), Button(text=c.CANCEL_LABEL)]]


def phone_request_keyboard() -> Keyboard:
    return [
        [Button(text=c.SHARE_PHONE_LABEL, request_contact=True)],
        [Button(text=c.CANCEL_LABEL)],
    ]


def address_keyboard(saved_address: Optional[str]) -> Keyboard:
    rows = []
    if saved_address:
        rows.append([Button(text=saved_address[:MAX_BUTTON_TEXT])])
    rows.append([Button(text=c.CANCEL_LABEL)])
    return rows


def category_keyboard(categories: Sequence[Category]) -> Keyboard:
    rows = [[button(f"🗂 {cat.name}", Verb.CATEGORY, cat.slug)] for cat in categories]
    rows.append([button("🏠 Home", Verb.HOME)])
    return rows


def category_select_keyboard(categories: Sequence[Category]) -> Keyboard:
    return [
        [button(f"{i}. {cat.name}", Verb.SELECT_CATEGORY, cat.id)]
        for i, cat in enumerate(categories, start=1)
    ]


def product_keyboard(product: Product) -> Keyboard:
    if not product.in_stock:
        return [[button("🛒 Cart", Verb.CART)]]
    return [[
        button("➕ Add to cart", Verb.ADD_TO_CART, product.id),
        button("⚡ Buy now", Verb.DIRECT_BUY, product.id),
    ]]


def category_page_keyboard(page: Page) -> Keyboard:
    row = []
    if page.has_next:
        row.append(button("⏩ More", Verb.MORE))
    row.append(button("⬅️ Categories", Verb.BACK))
    return [row, [button("🛒 Cart", Verb.CART)]]


def cart_keyboard(cart: Cart) -> Keyboard:
    rows = []
    for entry in cart.entries:
        line_id = entry.line.id
        rows.append([
            button("➖", Verb.CART_MINUS, line_id),
            button(f"{entry.product.name[:20]} ×{entry.line.quantity}", Verb.CART),
            button("➕", Verb.CART_PLUS, line_id),
            button("🗑", Verb.CART_REMOVE, line_id),
        ])
    rows.append([button("✅ Checkout", Verb.CART_CHECKOUT)])
    rows.append([button("🗑 Clear cart", Verb.CART_CLEAR), button("🛍 Catalog", Verb.CATALOG)])
    return rows


def confirm_order_keyboard() -> Keyboard:
    return [[
        button(c.CONFIRM_BUTTON, Verb.CONFIRM_ORDER),
        button(c.CANCEL_BUTTON, Verb.CANCEL_ORDER),
    ]]


def pager_row(verb: Verb, page: Page) -> List[Button]:
    row = []
    if page.has_prev:
        row.append(button("⬅️", verb, page.page - 1))
    if page.has_next:
        row.append(button("➡️", verb, page.page + 1))
    return row


def order_list_keyboard(page: Page, verb: Verb, back_verb: Verb) -> Keyboard:
    rows = [[button(format_order_line(order), Verb.ORDER_DETAILS, order.id)] for order in page.items]
    nav = pager_row(verb, page)
    if nav:
        rows.append(nav)
    rows.append([button("⬅️ Back", back_verb)])
    return rows


def order_actions_keyboard(order: Order, staff: bool) -> Keyboard:
    rows = []
    if staff:
        actions = []
        if order.status == OrderStatus.NEW:
            actions.append(button("⚙️ Accept", Verb.ACCEPT_ORDER, order.id))
        if order.status == OrderStatus.PROCESSING:
            actions.append(button("✅ Complete", Verb.COMPLETE_ORDER, order.id))
        if not order.is_terminal:
            actions.append(button("❌ Cancel", Verb.ADMIN_CANCEL_ORDER, order.id))
        if actions:
            rows.append(actions)
        rows.append([button("⬅️ Orders", Verb.ADMIN_ORDERS)])
    else:
        rows.append([button("⬅️ My orders", Verb.MY_ORDERS)])
    return rows


def admin_panel_keyboard(user: User) -> Keyboard:
    rows = [
        [button("📦 Products", Verb.ADMIN_PRODUCTS), button("🗂 Categories", Verb.ADMIN_CATEGORIES)],
        [button("🧾 Orders", Verb.ADMIN_ORDERS)],
        [button("➕ Add product", Verb.ADD_PRODUCT), button("➕ Add category", Verb.ADD_CATEGORY)],
        [button("🏪 Shop settings", Verb.SHOP_SETTINGS)],
    ]
    if user.is_admin:
        rows.append([button("👥 Users", Verb.ADMIN_USERS), button("👤 Add manager", Verb.ADD_MANAGER)])
    rows.append([button("🏠 Home", Verb.HOME)])
    return rows


def admin_products_keyboard(page: Page) -> Keyboard:
    rows = [
        [button(f"#{p.id} {p.name} ({p.stock})", Verb.EDIT_PRODUCT, p.id)]
        for p in page.items
    ]
    nav = pager_row(Verb.ADMIN_PRODUCTS, page)
    if nav:
        rows.append(nav)
    rows.append([button("➕ Add product", Verb.ADD_PRODUCT), button("⬅️ Admin", Verb.ADMIN)])
    return rows


def admin_categories_keyboard(categories: Sequence[Category]) -> Keyboard:
    rows = [
        [
            button(f"✏️ {cat.name}", Verb.EDIT_CATEGORY, cat.id),
            button("🗑", Verb.DELETE_CATEGORY, cat.id),
        ]
        for cat in categories
    ]
    rows.append([button("➕ Add category", Verb.ADD_CATEGORY), button("⬅️ Admin", Verb.ADMIN)])
    return rows


def admin_users_keyboard(page: Page) -> Keyboard:
    rows = []
    nav = pager_row(Verb.ADMIN_USERS, page)
    if nav:
        rows.append(nav)
    rows.append([button("🔁 Change role", Verb.CHANGE_ROLE), button("⬅️ Admin", Verb.ADMIN)])
    return rows


def shop_settings_keyboard() -> Keyboard:
    return [
        [button("📞 Contacts", Verb.EDIT_SHOP_CONTACTS), button("🆘 Support", Verb.EDIT_SHOP_SUPPORT)],
        [button("ℹ️ About", Verb.EDIT_SHOP_ABOUT), button("🕐 Hours", Verb.EDIT_SHOP_HOURS)],
        [button("⬅️ Admin", Verb.ADMIN)],
    ]


# ============================================================
# Bot API payloads
# ============================================================

def _button_payload(btn: Button) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"text": btn.text}
    if btn.url:
        payload["url"] = btn.url
    elif btn.callback_data:
        payload["callback_data"] = btn.callback_data
    elif btn.request_contact:
        payload["request_contact"] = True
    return payload


def reply_markup(message: OutboundMessage) -> Optional[Dict[str, Any]]:
    """
    Builds the Bot API reply_markup for a message.

    Inline keyboards win over reply keyboards; Telegram accepts only one.
    """
    if message.inline_keyboard:
        return {
            "inline_keyboard": [[_button_payload(b) for b in row] for row in message.inline_keyboard]
        }
    if message.reply_keyboard:
        return {
            "keyboard": [[_button_payload(b) for b in row] for row in message.reply_keyboard],
            "resize_keyboard": True,
        }
    if message.remove_keyboard:
        return {"remove_keyboard": True}
    return None
