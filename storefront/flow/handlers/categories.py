"""
storefront/flow/handlers/categories.py

Handles: category administration

Add category:
ADDING_CATEGORY_NAME -> ADDING_CATEGORY_DESCRIPTION -> commit

Edit category (state carries the category id):
EDITING_CATEGORY_MENU <-> EDITING_CATEGORY_{NAME,DESCRIPTION}
- 1 name, 2 description, 3 delete, 4 save and exit

- Names are unique ignoring case; a duplicate re-prompts
- A category that still holds products cannot be deleted
"""

from typing import Any, Dict

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
from storefront.models.catalog import DEFAULT_CATEGORY_DESCRIPTION
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.services import catalog_service
from storefront.services.catalog_service import DeleteResult
from storefront.services.session_service import KEEP, begin, get_scratch, reset, set_state
from storefront.services.user_service import require_staff
from storefront.utils import constants as c
from storefront.utils.formatting import esc
from storefront.utils.keyboards import (
    admin_categories_keyboard,
    button,
    cancel_keyboard,
    skip_cancel_keyboard,
)
from storefront.utils.validation_utils import is_skip, parse_index, sanitize_input

logger = get_logger(__name__)

S = ConversationState

MENU_NAME = 1
MENU_DESCRIPTION = 2
MENU_DELETE = 3
MENU_SAVE = 4


async def show_categories_admin(user: User) -> Reply:
    require_staff(user)
    categories = await catalog_service.list_categories()
    if not categories:
        return Reply.text(
            c.NO_CATEGORIES_MESSAGE,
            inline_keyboard=[[button("➕ Add category", Verb.ADD_CATEGORY), button("⬅️ Admin", Verb.ADMIN)]],
        )
    return Reply.text(c.ADMIN_CATEGORIES_HEADER, inline_keyboard=admin_categories_keyboard(categories))


async def _delete(user: User, category_id: int) -> Reply:
    """Deletes a category, refusing while it still holds products."""
    category = await catalog_service.get_category(category_id)
    result = await catalog_service.delete_category(category_id)

    if result == DeleteResult.HAS_PRODUCTS:
        count = await catalog_service.count_category_products(category_id)
        return answer(c.CATEGORY_NOT_EMPTY_MESSAGE.format(category=esc(category.name), count=count))

    if result == DeleteResult.NOT_FOUND:
        return answer(c.NOT_FOUND_MESSAGE.format(what=f"Category {esc(category.name)} was already deleted"))

    reply = answer(c.CATEGORY_DELETED_MESSAGE.format(category=esc(category.name)))
    return reply.extend(await show_categories_admin(user))


class CategoriesHandler(WizardHandler):
    name = "categories"
    verbs = frozenset({
        Verb.ADMIN_CATEGORIES,
        Verb.ADD_CATEGORY,
        Verb.EDIT_CATEGORY,
        Verb.DELETE_CATEGORY,
    })
    states = frozenset(steps_of(Flow.ADD_CATEGORY) + steps_of(Flow.EDIT_CATEGORY))

    # ==============================================
    # ENTRY
    # ==============================================

    async def handle(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        verb = ctx.verb

        if verb == Verb.ADMIN_CATEGORIES:
            return await show_categories_admin(ctx.user)

        if verb == Verb.ADD_CATEGORY:
            await begin(ctx.user, State(S.ADDING_CATEGORY_NAME))
            return Reply.text(c.ASK_CATEGORY_NAME, reply_keyboard=cancel_keyboard())

        if verb == Verb.DELETE_CATEGORY:
            return await _delete(ctx.user, ctx.action.id)

        category = await catalog_service.get_category(ctx.action.id)
        await begin(ctx.user, State(S.EDITING_CATEGORY_MENU, category.id), {"changes": {}})
        return await self._render_menu(category.id, {})

    # ==============================================
    # STEPS
    # ==============================================

    async def handle_step(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        step = ctx.state.step

        if step == S.ADDING_CATEGORY_NAME:
            return await self._add_name(ctx)
        if step == S.ADDING_CATEGORY_DESCRIPTION:
            return await self._add_description(ctx)
        if step == S.EDITING_CATEGORY_MENU:
            return await self._menu_choice(ctx)
        return await self._edit_field(ctx)

    # ---- add category ----

    async def _add_name(self, ctx: HandlerContext) -> Reply:
        name = sanitize_input(ctx.text)
        if not name:
            return Reply.text(c.EMPTY_VALUE_MESSAGE)

        if await catalog_service.find_category_by_name(name):
            return Reply.text(c.DUPLICATE_CATEGORY_MESSAGE.format(name=esc(name)))

        await set_state(ctx.user, State(S.ADDING_CATEGORY_DESCRIPTION), {"name": name})
        return Reply.text(c.ASK_CATEGORY_DESCRIPTION, reply_keyboard=skip_cancel_keyboard())

    async def _add_description(self, ctx: HandlerContext) -> Reply:
        description = None if is_skip(ctx.text) else sanitize_input(ctx.text)
        name = get_scratch(ctx.user).get("name")
        if not name:
            raise ResourceNotFoundError("The category draft was lost")

        async with commit_guard(ctx):
            category = await catalog_service.create_category(name, description)
            await reset(ctx.user, reason="category_created")

        reply = main_menu_reply(
            ctx.user, c.CATEGORY_CREATED_MESSAGE.format(category=esc(category.name), slug=category.slug)
        )
        return reply.extend(show_admin_panel(ctx.user))

    # ---- edit category ----

    def _staged(self, ctx: HandlerContext) -> Dict[str, Any]:
        return dict(get_scratch(ctx.user).get("changes") or {})

    async def _render_menu(self, category_id: int, changes: Dict[str, Any]) -> Reply:
        category = await catalog_service.get_category(category_id)
        count = await catalog_service.count_category_products(category_id)

        description = changes.get("description", category.description)
        summary = "\n".join([
            f"Name: {esc(changes.get('name', category.name))}",
            f"Slug: {category.slug}",
            f"Description: {esc(description or DEFAULT_CATEGORY_DESCRIPTION)}",
            f"Products: {count}",
        ])
        return Reply.text(
            c.EDIT_CATEGORY_MENU.format(category_id=category_id, summary=summary),
            reply_keyboard=cancel_keyboard(),
        )

    async def _menu_choice(self, ctx: HandlerContext) -> Reply:
        category_id = ctx.state.entity_id
        index = parse_index(ctx.text, MENU_SAVE)
        if index is None:
            return Reply.text(c.INVALID_MENU_CHOICE.format(maximum=MENU_SAVE))
        choice = index + 1

        if choice == MENU_DELETE:
            category = await catalog_service.get_category(category_id)
            if await catalog_service.count_category_products(category_id):
                # Stay on the menu so the admin can keep editing
                return await _delete(ctx.user, category_id)

            async with commit_guard(ctx):
                await catalog_service.delete_category(category_id)
                await reset(ctx.user, reason="category_deleted")
            reply = main_menu_reply(ctx.user, c.CATEGORY_DELETED_MESSAGE.format(category=esc(category.name)))
            return reply.extend(show_admin_panel(ctx.user))

        if choice == MENU_SAVE:
            changes = self._staged(ctx)
            async with commit_guard(ctx):
                category = await catalog_service.update_category(
                    category_id,
                    name=changes.get("name"),
                    description=changes.get("description"),
                )
                await reset(ctx.user, reason="category_saved")
            reply = main_menu_reply(ctx.user, c.CATEGORY_SAVED_MESSAGE.format(category=esc(category.name)))
            return reply.extend(show_admin_panel(ctx.user))

        await catalog_service.get_category(category_id)
        if choice == MENU_NAME:
            await set_state(ctx.user, ctx.state.with_step(S.EDITING_CATEGORY_NAME), KEEP)
            return Reply.text(c.ASK_NEW_VALUE.format(field="name"))

        if choice == MENU_DESCRIPTION:
            await set_state(ctx.user, ctx.state.with_step(S.EDITING_CATEGORY_DESCRIPTION), KEEP)
            return Reply.text(c.ASK_CATEGORY_DESCRIPTION, reply_keyboard=skip_cancel_keyboard())

        return Reply.text(c.INVALID_MENU_CHOICE.format(maximum=MENU_SAVE))

    async def _edit_field(self, ctx: HandlerContext) -> Reply:
        category_id = ctx.state.entity_id
        changes = self._staged(ctx)

        if ctx.state.step == S.EDITING_CATEGORY_NAME:
            name = sanitize_input(ctx.text)
            if not name:
                return Reply.text(c.EMPTY_VALUE_MESSAGE)
            owner = await catalog_service.find_category_by_name(name)
            if owner and owner.id != category_id:
                return Reply.text(c.DUPLICATE_CATEGORY_MESSAGE.format(name=esc(name)))
            changes["name"] = name
        else:
            # Skipping restores the placeholder description
            changes["description"] = "" if is_skip(ctx.text) else sanitize_input(ctx.text)

        await set_state(ctx.user, ctx.state.with_step(S.EDITING_CATEGORY_MENU), {"changes": changes})
        return await self._render_menu(category_id, changes)
