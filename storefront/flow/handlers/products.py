"""
storefront/flow/handlers/products.py

Handles: product administration

Add product:
ADDING_PRODUCT_NAME -> PRICE -> STOCK -> CATEGORY -> DESCRIPTION -> IMAGE -> commit

Edit product (state carries the product id):
EDITING_PRODUCT_MENU <-> EDITING_PRODUCT_<FIELD>
- 1-6 pick a field, the new value is staged in scratch
- 7 deletes the product, 8 saves staged changes and exits

- Paged product list for staff
- Every entry point and step checks the staff role first
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.core.config import settings
from storefront.core.exceptions import ResourceNotFoundError
from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.admin import show_admin_panel
from storefront.flow.handlers.base import (
    HandlerContext,
    WizardHandler,
    answer,
    commit_guard,
    main_menu_reply,
)
from storefront.flow.states import ConversationState, Flow, State, steps_of
from storefront.models.catalog import Category, Product
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.schemas.updates import EventKind
from storefront.services import catalog_service
from storefront.services.session_service import KEEP, begin, get_scratch, reset, set_state
from storefront.services.user_service import require_staff
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_category_list, format_product_summary
from storefront.utils.keyboards import (
    admin_products_keyboard,
    button,
    cancel_keyboard,
    category_select_keyboard,
    skip_cancel_keyboard,
)
from storefront.utils.validation_utils import (
    is_image_url,
    is_skip,
    parse_index,
    parse_price,
    parse_quantity,
    sanitize_input,
)

logger = get_logger(__name__)

S = ConversationState

# Edit menu: option number -> field step
EDIT_MENU_FIELDS = {
    1: S.EDITING_PRODUCT_NAME,
    2: S.EDITING_PRODUCT_PRICE,
    3: S.EDITING_PRODUCT_STOCK,
    4: S.EDITING_PRODUCT_CATEGORY,
    5: S.EDITING_PRODUCT_DESCRIPTION,
    6: S.EDITING_PRODUCT_IMAGE,
}
MENU_DELETE = 7
MENU_SAVE = 8

FIELD_LABELS = {
    S.EDITING_PRODUCT_NAME: "name",
    S.EDITING_PRODUCT_PRICE: "price",
    S.EDITING_PRODUCT_STOCK: "stock",
    S.EDITING_PRODUCT_CATEGORY: "category_id",
    S.EDITING_PRODUCT_DESCRIPTION: "description",
    S.EDITING_PRODUCT_IMAGE: "image",
}

CATEGORY_STEPS = frozenset({S.ADDING_PRODUCT_CATEGORY, S.EDITING_PRODUCT_CATEGORY})
IMAGE_STEPS = frozenset({S.ADDING_PRODUCT_IMAGE, S.EDITING_PRODUCT_IMAGE})

# Sentinel: input rejected, the step re-prompts
_INVALID = object()


async def show_products(user: User, page: int = 0) -> Reply:
    require_staff(user)
    listing = await catalog_service.list_products_page(page, settings.ADMIN_PAGE_SIZE)
    if not listing.total:
        return Reply.text(
            c.NO_PRODUCTS_MESSAGE,
            inline_keyboard=[[button("➕ Add product", Verb.ADD_PRODUCT), button("⬅️ Admin", Verb.ADMIN)]],
        )
    return Reply.text(
        c.ADMIN_PRODUCTS_HEADER.format(page=listing.page + 1, pages=listing.pages),
        inline_keyboard=admin_products_keyboard(listing),
    )


def _category_prompt(categories: List[Category]) -> Reply:
    return Reply.text(
        c.ASK_PRODUCT_CATEGORY.format(categories=format_category_list(categories)),
        inline_keyboard=category_select_keyboard(categories),
    )


def _typed_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Scratch is JSON; restore Decimal prices before they reach the model."""
    typed = dict(changes)
    if typed.get("price") is not None:
        typed["price"] = Decimal(str(typed["price"]))
    return typed


class ProductsHandler(WizardHandler):
    name = "products"
    verbs = frozenset({Verb.ADMIN_PRODUCTS, Verb.ADD_PRODUCT, Verb.EDIT_PRODUCT, Verb.SELECT_CATEGORY})
    states = frozenset(steps_of(Flow.ADD_PRODUCT) + steps_of(Flow.EDIT_PRODUCT))
    step_verbs = frozenset({Verb.SELECT_CATEGORY})

    def accepts_callback(self, ctx: HandlerContext) -> bool:
        return ctx.verb in self.step_verbs and ctx.state.step in CATEGORY_STEPS

    # ==============================================
    # ENTRY
    # ==============================================

    async def handle(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        verb = ctx.verb

        if verb == Verb.ADMIN_PRODUCTS:
            return await show_products(ctx.user, ctx.action.page)

        if verb == Verb.SELECT_CATEGORY:
            # Category button pressed outside the category step
            return answer(c.STALE_BUTTON_MESSAGE)

        if verb == Verb.ADD_PRODUCT:
            if not await catalog_service.list_categories():
                return answer(c.NO_CATEGORIES_FOR_PRODUCT)
            await begin(ctx.user, State(S.ADDING_PRODUCT_NAME))
            return Reply.text(c.ASK_PRODUCT_NAME, reply_keyboard=cancel_keyboard())

        product = await catalog_service.get_product(ctx.action.id)
        await begin(ctx.user, State(S.EDITING_PRODUCT_MENU, product.id), {"changes": {}})
        return await self._render_menu(product.id, {})

    # ==============================================
    # STEPS
    # ==============================================

    async def handle_step(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        step = ctx.state.step

        if ctx.event.kind == EventKind.PHOTO and step not in IMAGE_STEPS:
            return Reply.text(c.EMPTY_VALUE_MESSAGE)

        if ctx.state.flow == Flow.ADD_PRODUCT:
            return await self._add_step(ctx)
        if step == S.EDITING_PRODUCT_MENU:
            return await self._menu_choice(ctx)
        return await self._edit_field(ctx)

    # ---- shared field parsing ----

    async def _parse_field(self, ctx: HandlerContext, step: ConversationState):
        """
        Parses the input for a field step.

        Returns:
            (value, error reply). ``value`` is _INVALID when the input was
            rejected; the error reply then re-prompts the same step.
        """
        text = ctx.text

        if step in (S.ADDING_PRODUCT_NAME, S.EDITING_PRODUCT_NAME,
                    S.ADDING_PRODUCT_DESCRIPTION, S.EDITING_PRODUCT_DESCRIPTION):
            value = sanitize_input(text)
            if not value:
                return _INVALID, Reply.text(c.EMPTY_VALUE_MESSAGE)
            return value, None

        if step in (S.ADDING_PRODUCT_PRICE, S.EDITING_PRODUCT_PRICE):
            price = parse_price(text)
            if price is None:
                return _INVALID, Reply.text(c.INVALID_PRICE_MESSAGE)
            return str(price), None

        if step in (S.ADDING_PRODUCT_STOCK, S.EDITING_PRODUCT_STOCK):
            stock = parse_quantity(text)
            if stock is None:
                return _INVALID, Reply.text(c.INVALID_STOCK_MESSAGE)
            return stock, None

        if step in CATEGORY_STEPS:
            categories = await catalog_service.list_categories()
            if ctx.verb == Verb.SELECT_CATEGORY:
                category = await catalog_service.get_category(ctx.action.id)
                return category.id, None
            index = parse_index(text, len(categories))
            if index is None:
                reply = Reply.text(c.INVALID_MENU_CHOICE.format(maximum=len(categories)))
                reply.extend(_category_prompt(categories))
                return _INVALID, reply
            return categories[index].id, None

        # Image steps
        if ctx.event.kind == EventKind.PHOTO:
            return ctx.event.photo_file_id, None
        if is_skip(text):
            return None, None
        if is_image_url(text):
            return text.strip(), None
        return _INVALID, Reply.text(c.INVALID_IMAGE_MESSAGE, reply_keyboard=skip_cancel_keyboard())

    # ---- add product ----

    async def _add_step(self, ctx: HandlerContext) -> Reply:
        step = ctx.state.step
        value, error = await self._parse_field(ctx, step)
        if value is _INVALID:
            return error

        scratch = get_scratch(ctx.user)

        if step == S.ADDING_PRODUCT_NAME:
            await set_state(ctx.user, State(S.ADDING_PRODUCT_PRICE), {**scratch, "name": value})
            return Reply.text(c.ASK_PRODUCT_PRICE)

        if step == S.ADDING_PRODUCT_PRICE:
            await set_state(ctx.user, State(S.ADDING_PRODUCT_STOCK), {**scratch, "price": value})
            return Reply.text(c.ASK_PRODUCT_STOCK)

        if step == S.ADDING_PRODUCT_STOCK:
            categories = await catalog_service.list_categories()
            if not categories:
                raise ResourceNotFoundError("All categories were deleted")
            await set_state(ctx.user, State(S.ADDING_PRODUCT_CATEGORY), {**scratch, "stock": value})
            return _category_prompt(categories)

        if step == S.ADDING_PRODUCT_CATEGORY:
            category = await catalog_service.get_category(value)
            await set_state(
                ctx.user, State(S.ADDING_PRODUCT_DESCRIPTION), {**scratch, "category_id": value}
            )
            reply = answer(c.CATEGORY_PICKED_MESSAGE.format(category=esc(category.name)))
            return reply.add(c.ASK_PRODUCT_DESCRIPTION)

        if step == S.ADDING_PRODUCT_DESCRIPTION:
            await set_state(ctx.user, State(S.ADDING_PRODUCT_IMAGE), {**scratch, "description": value})
            return Reply.text(c.ASK_PRODUCT_IMAGE, reply_keyboard=skip_cancel_keyboard())

        return await self._create(ctx, {**scratch, "image": value})

    async def _create(self, ctx: HandlerContext, draft: Dict[str, Any]) -> Reply:
        async with commit_guard(ctx):
            try:
                product = Product(
                    name=draft["name"],
                    price=Decimal(str(draft["price"])),
                    stock=draft["stock"],
                    category_id=draft["category_id"],
                    description=draft["description"],
                    image=draft.get("image"),
                )
            except KeyError as e:
                raise ResourceNotFoundError("The product draft was lost", details={"missing": str(e)}) from None

            product = await catalog_service.create_product(product)
            await reset(ctx.user, reason="product_created")

        reply = main_menu_reply(ctx.user, c.PRODUCT_CREATED_MESSAGE.format(product=esc(product.name)))
        return reply.extend(show_admin_panel(ctx.user))

    # ---- edit product ----

    def _staged(self, ctx: HandlerContext) -> Dict[str, Any]:
        # Scratch may be gone after a restart; the product id lives in the state
        return dict(get_scratch(ctx.user).get("changes") or {})

    async def _render_menu(self, product_id: int, changes: Dict[str, Any]) -> Reply:
        product = await catalog_service.get_product(product_id)
        preview = product.model_copy(update=_typed_changes(changes))

        category: Optional[Category] = None
        if preview.category_id is not None:
            category = await catalog_service.find_category(preview.category_id)

        return Reply.text(c.EDIT_PRODUCT_MENU.format(
            product_id=product_id,
            summary=format_product_summary(preview, category),
        ), reply_keyboard=cancel_keyboard())

    async def _menu_choice(self, ctx: HandlerContext) -> Reply:
        product_id = ctx.state.entity_id
        index = parse_index(ctx.text, MENU_SAVE)
        if index is None:
            return Reply.text(c.INVALID_MENU_CHOICE.format(maximum=MENU_SAVE))
        choice = index + 1

        if choice == MENU_DELETE:
            async with commit_guard(ctx):
                product = await catalog_service.delete_product(product_id)
                await reset(ctx.user, reason="product_deleted")
            reply = main_menu_reply(ctx.user, c.PRODUCT_DELETED_MESSAGE.format(product=esc(product.name)))
            return reply.extend(show_admin_panel(ctx.user))

        if choice == MENU_SAVE:
            changes = _typed_changes(self._staged(ctx))
            async with commit_guard(ctx):
                product = await catalog_service.update_product(product_id, **changes)
                await reset(ctx.user, reason="product_saved")
            reply = main_menu_reply(ctx.user, c.PRODUCT_SAVED_MESSAGE.format(product=esc(product.name)))
            return reply.extend(show_admin_panel(ctx.user))

        # Make sure the product still exists before asking for a value
        await catalog_service.get_product(product_id)

        step = EDIT_MENU_FIELDS[choice]
        if step == S.EDITING_PRODUCT_CATEGORY:
            categories = await catalog_service.list_categories()
            if not categories:
                return Reply.text(c.NO_CATEGORIES_TO_MOVE_TO)
            await set_state(ctx.user, ctx.state.with_step(step), KEEP)
            return _category_prompt(categories)

        await set_state(ctx.user, ctx.state.with_step(step), KEEP)
        if step == S.EDITING_PRODUCT_IMAGE:
            return Reply.text(c.ASK_PRODUCT_IMAGE, reply_keyboard=skip_cancel_keyboard())
        return Reply.text(c.ASK_NEW_VALUE.format(field=FIELD_LABELS[step]))

    async def _edit_field(self, ctx: HandlerContext) -> Reply:
        step = ctx.state.step
        product_id = ctx.state.entity_id

        value, error = await self._parse_field(ctx, step)
        if value is _INVALID:
            return error

        changes = self._staged(ctx)
        # Skipping the image keeps the current one
        if not (step == S.EDITING_PRODUCT_IMAGE and value is None):
            changes[FIELD_LABELS[step]] = value

        await set_state(ctx.user, ctx.state.with_step(S.EDITING_PRODUCT_MENU), {"changes": changes})
        return await self._render_menu(product_id, changes)
