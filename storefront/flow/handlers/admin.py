"""
storefront/flow/handlers/admin.py

Handles: admin panel, manager promotion and user roles

- admin: staff entry point
- add_manager: ADMIN enters a chat id, that user becomes MANAGER
- admin_users: ADMIN pages through every user with their role
- change_role: ADMIN sends "<chat id> <role>" (or "<chat id>|<role>")
"""

import re
from typing import Optional, Tuple

from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import HandlerContext, WizardHandler, main_menu_reply
from storefront.flow.states import ConversationState, State
from storefront.models.user import STAFF_ROLES, Role, User
from storefront.schemas.replies import Reply
from storefront.services.session_service import begin, reset
from storefront.services.user_service import (
    change_role,
    get_user,
    list_users_page,
    promote_to_manager,
    require_role,
    require_staff,
)
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_user_line
from storefront.utils.keyboards import (
    admin_panel_keyboard,
    admin_users_keyboard,
    cancel_keyboard,
    main_menu_keyboard,
)
from storefront.utils.validation_utils import parse_chat_id

logger = get_logger(__name__)

_ROLE_CHANGE = re.compile(r"^\s*(-?\d{1,15})\s*[|\s]\s*([A-Za-z]+)\s*$")


def show_admin_panel(user: User) -> Reply:
    require_staff(user)
    return Reply.text(c.ADMIN_PANEL_MESSAGE, inline_keyboard=admin_panel_keyboard(user))


async def show_users(user: User, page: int = 0) -> Reply:
    require_role(user, Role.ADMIN)
    users = await list_users_page(page, settings.ADMIN_PAGE_SIZE)
    lines = [c.USERS_HEADER.format(page=users.page + 1, pages=users.pages, total=users.total), ""]
    lines += [format_user_line(u) for u in users.items]
    return Reply.text("\n".join(lines), inline_keyboard=admin_users_keyboard(users))


def parse_role_change(text: str) -> Optional[Tuple[int, Role]]:
    """
    Returns:
        (chat id, role), or None if the text is not "<chat id> <role>"
    """
    match = _ROLE_CHANGE.match(text or "")
    if not match:
        return None
    try:
        return int(match.group(1)), Role(match.group(2).upper())
    except ValueError:
        return None


class AdminHandler(WizardHandler):
    name = "admin"
    verbs = frozenset({Verb.ADMIN, Verb.ADD_MANAGER, Verb.ADMIN_USERS, Verb.CHANGE_ROLE})
    states = frozenset({ConversationState.ADDING_MANAGER, ConversationState.CHANGING_USER_ROLE})

    async def handle(self, ctx: HandlerContext) -> Reply:
        if ctx.verb == Verb.ADMIN:
            return show_admin_panel(ctx.user)
        if ctx.verb == Verb.ADMIN_USERS:
            return await show_users(ctx.user, ctx.action.page)

        require_role(ctx.user, Role.ADMIN)
        if ctx.verb == Verb.CHANGE_ROLE:
            await begin(ctx.user, State(ConversationState.CHANGING_USER_ROLE))
            return Reply.text(c.ASK_ROLE_CHANGE, reply_keyboard=cancel_keyboard())

        await begin(ctx.user, State(ConversationState.ADDING_MANAGER))
        return Reply.text(c.ASK_MANAGER_ID, reply_keyboard=cancel_keyboard())

    async def handle_step(self, ctx: HandlerContext) -> Reply:
        require_role(ctx.user, Role.ADMIN)
        if ctx.state.step == ConversationState.CHANGING_USER_ROLE:
            return await self._change_role(ctx)

        chat_id = parse_chat_id(ctx.text)
        if chat_id is None:
            return Reply.text(c.INVALID_CHAT_ID_MESSAGE)

        if not await get_user(chat_id):
            return Reply.text(c.UNKNOWN_CHAT_MESSAGE.format(chat_id=chat_id))

        target = await promote_to_manager(ctx.user, chat_id)
        await reset(ctx.user, reason="manager_added")
        logger.info(f"👤 {ctx.chat_id} promoted {chat_id} to manager")

        reply = main_menu_reply(ctx.user, c.MANAGER_ADDED_MESSAGE.format(user=esc(target.display_name)))
        reply.notify(target.chat_id, c.PROMOTED_NOTIFICATION, reply_keyboard=main_menu_keyboard(target))
        return reply

    async def _change_role(self, ctx: HandlerContext) -> Reply:
        parsed = parse_role_change(ctx.text)
        if parsed is None:
            return Reply.text(c.INVALID_ROLE_CHANGE_MESSAGE)
        chat_id, role = parsed

        if not await get_user(chat_id):
            return Reply.text(c.UNKNOWN_CHAT_MESSAGE.format(chat_id=chat_id))

        previous, target = await change_role(ctx.user, chat_id, role)
        await reset(ctx.user, reason="role_changed")
        if previous in STAFF_ROLES and not target.is_staff and target.state:
            # A demoted user must not stay parked on a staff wizard step
            await reset(target, reason="demoted")
        logger.info(f"🔁 {ctx.chat_id} changed {chat_id} from {previous.value} to {role.value}")

        reply = main_menu_reply(ctx.user, c.ROLE_CHANGED_MESSAGE.format(
            user=esc(target.display_name), previous=previous.value, role=role.value,
        ))
        if previous != role:
            reply.notify(
                target.chat_id,
                c.ROLE_CHANGED_NOTIFICATION.format(role=role.value),
                reply_keyboard=main_menu_keyboard(target),
            )
        return reply
