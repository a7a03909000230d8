"""
storefront/flow/handlers/shop.py

Handles: shop info pages and the shop settings editor

- "About us" and "Support" pages for everyone (menu labels, /info, /support)
- shop_settings: staff overview with one button per section
- edit_shop_*: one-step wizards, each replaces one section and returns to NORMAL

EDITING_SHOP_CONTACTS expects "phone | email | website".
EDITING_SHOP_HOURS turns a typed \\n into a line break.
"""

from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import HandlerContext, WizardHandler, commit_guard, main_menu_reply
from storefront.flow.states import ConversationState, Flow, State, steps_of
from storefront.models.user import User
from storefront.schemas.replies import Reply
from storefront.services import shop_service
from storefront.services.session_service import begin, reset
from storefront.services.user_service import require_staff
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_shop_info, format_shop_settings, format_shop_support
from storefront.utils.keyboards import cancel_keyboard, shop_settings_keyboard
from storefront.utils.validation_utils import parse_contacts, sanitize_input

logger = get_logger(__name__)

S = ConversationState

EDIT_VERBS = {
    Verb.EDIT_SHOP_CONTACTS: (S.EDITING_SHOP_CONTACTS, c.ASK_SHOP_CONTACTS),
    Verb.EDIT_SHOP_SUPPORT: (S.EDITING_SHOP_SUPPORT, c.ASK_SHOP_SUPPORT),
    Verb.EDIT_SHOP_ABOUT: (S.EDITING_SHOP_ABOUT, c.ASK_SHOP_ABOUT),
    Verb.EDIT_SHOP_HOURS: (S.EDITING_SHOP_HOURS, c.ASK_SHOP_HOURS),
}


async def show_info(user: User) -> Reply:
    shop = await shop_service.get_shop_settings()
    return main_menu_reply(user, format_shop_info(shop))


async def show_support(user: User) -> Reply:
    shop = await shop_service.get_shop_settings()
    return main_menu_reply(user, format_shop_support(shop))


async def show_shop_settings(user: User) -> Reply:
    require_staff(user)
    shop = await shop_service.get_shop_settings()
    return Reply.text(format_shop_settings(shop), inline_keyboard=shop_settings_keyboard())


class ShopSettingsHandler(WizardHandler):
    name = "shop_settings"
    verbs = frozenset({Verb.SHOP_SETTINGS, *EDIT_VERBS})
    states = frozenset(steps_of(Flow.SHOP_SETTINGS))

    async def handle(self, ctx: HandlerContext) -> Reply:
        if ctx.verb == Verb.SHOP_SETTINGS:
            return await show_shop_settings(ctx.user)

        require_staff(ctx.user)
        step, prompt = EDIT_VERBS[ctx.verb]
        await begin(ctx.user, State(step))
        return Reply.text(prompt, reply_keyboard=cancel_keyboard())

    async def handle_step(self, ctx: HandlerContext) -> Reply:
        require_staff(ctx.user)
        step = ctx.state.step

        if step == S.EDITING_SHOP_CONTACTS:
            contacts = parse_contacts(ctx.text)
            if contacts is None:
                return Reply.text(c.INVALID_SHOP_CONTACTS_MESSAGE)
            async with commit_guard(ctx):
                shop = await shop_service.update_contacts(*contacts)
                await reset(ctx.user, reason="shop_contacts_saved")
            value = f"{shop.phone}\n{shop.email}\n{shop.website}"
        else:
            text = sanitize_input(ctx.text)
            if not text:
                return Reply.text(c.EMPTY_VALUE_MESSAGE)
            async with commit_guard(ctx):
                if step == S.EDITING_SHOP_SUPPORT:
                    value = (await shop_service.update_support(text)).support_info
                elif step == S.EDITING_SHOP_ABOUT:
                    value = (await shop_service.update_about(text)).about_info
                else:
                    value = (await shop_service.update_hours(text)).working_hours
                await reset(ctx.user, reason="shop_settings_saved")

        logger.info(f"🏪 {ctx.chat_id} edited {step.value}")
        reply = main_menu_reply(ctx.user, c.SHOP_SETTINGS_SAVED_MESSAGE.format(value=esc(value)))
        return reply.extend(await show_shop_settings(ctx.user))
