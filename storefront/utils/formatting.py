"""
storefront/utils/formatting.py

Purpose: Text rendering helpers

- Money formatting with the configured currency
- HTML escaping of user-supplied values
- Product cards, cart listings and order summaries
- Shop info pages and the admin user list
"""

import html
from decimal import Decimal
from typing import Iterable, Optional

from storefront.core.config import settings
from storefront.models.cart import Cart
from storefront.models.catalog import Category, Product
from storefront.models.order import STATUS_LABELS, Order, OrderItem
from storefront.models.shop import ShopSettings
from storefront.models.user import Role, User
from storefront.utils import constants as c


def esc(value) -> str:
    return html.escape(str(value), quote=False)


def format_money(amount: Decimal) -> str:
    """
    Formats an amount with thousands separators and the currency label.

    Example:
        format_money(Decimal("1234.5")) -> "1 234.50 RUB"
    """
    text = f"{amount.quantize(Decimal('0.01')):,.2f}".replace(",", " ")
    return f"{text} {settings.CURRENCY}"


def format_product_card(product: Product, category: Optional[Category] = None) -> str:
    lines = [f"<b>{esc(product.name)}</b>"]
    if category:
        lines.append(f"🗂 {esc(category.name)}")
    if product.description:
        lines.append("")
        lines.append(esc(product.description))
    lines.append("")
    lines.append(f"💰 {format_money(product.price)}")
    if product.in_stock:
        lines.append(f"📦 In stock: {product.stock}")
    else:
        lines.append("📦 Out of stock")
    return "\n".join(lines)


def format_product_summary(product: Product, category: Optional[Category] = None) -> str:
    """Compact listing used inside edit menus."""
    return "\n".join([
        f"Name: {esc(product.name)}",
        f"Price: {format_money(product.price)}",
        f"Stock: {product.stock}",
        f"Category: {esc(category.name) if category else '-'}",
        f"Description: {esc(product.description) or '-'}",
        f"Image: {'yes' if product.image else 'no'}",
    ])


def format_category_list(categories: Iterable[Category]) -> str:
    return "\n".join(f"{i}. {esc(c.name)}" for i, c in enumerate(categories, start=1))


def format_cart(cart: Cart) -> str:
    lines = []
    for i, entry in enumerate(cart.entries, start=1):
        lines.append(
            f"{i}. <b>{esc(entry.product.name)}</b>\n"
            f"    {entry.line.quantity} × {format_money(entry.product.price)} = {format_money(entry.subtotal)}"
        )
    return "\n".join(lines)


def format_items(items: Iterable[OrderItem]) -> str:
    return "\n".join(
        f"• {esc(item.product_name)}: {item.quantity} × {format_money(item.unit_price)}"
        for item in items
    )


def format_order(order: Order, customer: Optional[str] = None) -> str:
    lines = [
        f"📦 <b>Order #{order.id}</b>",
        f"Status: {STATUS_LABELS[order.status]}",
        f"Created: {order.created_at:%Y-%m-%d %H:%M} UTC",
    ]
    if customer:
        lines.append(f"👤 {esc(customer)}")
    lines.extend([
        f"📱 {esc(order.phone)}",
        f"🏠 {esc(order.address)}",
    ])
    if order.comment:
        lines.append(f"💬 {esc(order.comment)}")
    lines.extend(["", format_items(order.items), "", f"💰 <b>Total: {format_money(order.total)}</b>"])
    return "\n".join(lines)


def format_order_line(order: Order) -> str:
    """One-line label for order list buttons."""
    return f"#{order.id} · {STATUS_LABELS[order.status]} · {format_money(order.total)}"


ROLE_ICONS = {Role.ADMIN: "👑", Role.MANAGER: "🧑‍💼", Role.USER: "👤"}


def format_user_line(user: User) -> str:
    return c.USER_LINE.format(
        role_icon=ROLE_ICONS[user.role],
        chat_id=user.chat_id,
        name=esc(user.display_name),
        role=user.role.value,
    )


def format_shop_info(shop: ShopSettings) -> str:
    return c.INFO_MESSAGE.format(
        about=esc(shop.about_info),
        phone=esc(shop.phone),
        email=esc(shop.email),
        website=esc(shop.website),
        hours=esc(shop.working_hours),
    )


def format_shop_support(shop: ShopSettings) -> str:
    return c.SUPPORT_MESSAGE.format(
        support=esc(shop.support_info),
        phone=esc(shop.phone),
        email=esc(shop.email),
    )


def format_shop_settings(shop: ShopSettings) -> str:
    return c.SHOP_SETTINGS_MESSAGE.format(
        phone=esc(shop.phone),
        email=esc(shop.email),
        website=esc(shop.website),
        support=esc(shop.support_info),
        about=esc(shop.about_info),
        hours=esc(shop.working_hours),
    )
