"""
storefront/flow/handlers/catalog.py

Handles: catalog browsing

- Category list (catalog / back)
- Paged product cards per category (category:<slug>[:<page>], more)
- Add to cart from a product card
"""

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import Handler, HandlerContext, answer
from storefront.models.user import User
from storefront.schemas.replies import OutboundMessage, Reply
from storefront.services import cart_service, catalog_service
from storefront.services.user_service import save_catalog_cursor
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_product_card
from storefront.utils.keyboards import (
    button,
    category_keyboard,
    category_page_keyboard,
    product_keyboard,
)

logger = get_logger(__name__)


async def show_categories(user: User) -> Reply:
    categories = await catalog_service.list_categories()
    if not categories:
        return Reply.text(c.CATALOG_EMPTY_MESSAGE)
    return Reply.text(c.CHOOSE_CATEGORY_MESSAGE, inline_keyboard=category_keyboard(categories))


async def show_category_page(user: User, slug: str, page: int) -> Reply:
    """
    Renders one page of a category: a card per product, then a footer with
    the pager.

    Args:
        user: Viewer (their catalog cursor is updated)
        slug: Category slug
        page: Zero-based page, clamped to the last page

    Returns:
        Reply with one message per product plus the footer
    """
    category = await catalog_service.get_category_by_slug(slug)
    listing = await catalog_service.list_category_products(
        category.id, page, settings.CATALOG_PAGE_SIZE
    )
    await save_catalog_cursor(user, category.slug, listing.page)

    if not listing.items:
        return Reply.text(
            c.CATEGORY_EMPTY_MESSAGE.format(category=esc(category.name)),
            inline_keyboard=[[button("⬅️ Categories", Verb.BACK)]],
        )

    reply = Reply()
    for product in listing.items:
        reply.messages.append(OutboundMessage(
            text=format_product_card(product, category),
            photo=product.image,
            inline_keyboard=product_keyboard(product),
        ))

    reply.add(
        c.CATEGORY_PAGE_MESSAGE.format(
            category=esc(category.name), page=listing.page + 1, pages=listing.pages
        ),
        inline_keyboard=category_page_keyboard(listing),
    )
    return reply


class CatalogHandler(Handler):
    name = "catalog"
    verbs = frozenset({Verb.CATALOG, Verb.CATEGORY, Verb.MORE, Verb.BACK, Verb.ADD_TO_CART})

    async def handle(self, ctx: HandlerContext) -> Reply:
        verb = ctx.verb

        if verb in (Verb.CATALOG, Verb.BACK):
            return await show_categories(ctx.user)

        if verb == Verb.CATEGORY:
            return await show_category_page(ctx.user, ctx.action.slug, ctx.action.page)

        if verb == Verb.MORE:
            return await self._more(ctx)

        return await self._add_to_cart(ctx)

    async def _more(self, ctx: HandlerContext) -> Reply:
        user = ctx.user
        if not user.catalog_slug:
            return await show_categories(user)

        current = user.catalog_page
        reply = await show_category_page(user, user.catalog_slug, current + 1)
        if user.catalog_page == current:
            # Already on the last page
            return answer(c.NO_MORE_PRODUCTS_MESSAGE)
        return reply

    async def _add_to_cart(self, ctx: HandlerContext) -> Reply:
        product = await catalog_service.get_product(ctx.action.id)

        if await cart_service.add_to_cart(ctx.chat_id, product.id):
            return answer(
                c.ADDED_TO_CART_MESSAGE.format(product=esc(product.name)),
                inline_keyboard=[[button("🛒 Cart", Verb.CART), button("✅ Checkout", Verb.CART_CHECKOUT)]],
            )

        if not product.in_stock:
            return answer(c.OUT_OF_STOCK_MESSAGE.format(product=esc(product.name)))
        return answer(c.ADD_TO_CART_FAILED_MESSAGE.format(product=esc(product.name), stock=product.stock))
