"""
storefront/services/user_service.py

Purpose: User data management

- Create user records on first contact
- Bootstrap ADMIN role for configured chat ids
- Role checks, manager promotion and role changes
- Paged user list for the admin panel
- Remember contact details between checkouts
"""

from typing import List, Optional, Tuple

from storefront.core.config import settings
from storefront.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from storefront.core.logging import LogContext, get_logger
from storefront.db.repositories import get_store
from storefront.models.page import Page
from storefront.models.user import Role, User

logger = get_logger(__name__)


async def get_or_create_user(
    chat_id: int,
    first_name: Optional[str] = None,
    username: Optional[str] = None
) -> User:
    """
    Retrieves an existing user or creates a new one.

    Args:
        chat_id: Telegram chat id
        first_name: Sender's first name, if known
        username: Sender's @username, if known

    Returns:
        User document
    """
    with LogContext(chat_id=chat_id):
        users = get_store().users
        user = await users.get(chat_id)
        bootstrap_admin = chat_id in settings.ADMIN_CHAT_IDS

        if not user:
            logger.info("Creating new user")
            user = await users.insert(User(
                chat_id=chat_id,
                role=Role.ADMIN if bootstrap_admin else Role.USER,
                first_name=first_name,
                username=username,
            ))
            logger.info(f"New user created successfully with role {user.role.value}")
            return user

        changed = False
        if bootstrap_admin and user.role != Role.ADMIN:
            logger.info("Promoting configured admin chat to ADMIN")
            user.role = Role.ADMIN
            changed = True
        if first_name and first_name != user.first_name:
            user.first_name = first_name
            changed = True
        if username and username != user.username:
            user.username = username
            changed = True

        if changed:
            await users.save(user)

        return user


async def get_user(chat_id: int) -> Optional[User]:
    return await get_store().users.get(chat_id)


def require_role(user: User, *roles: Role) -> None:
    """
    Rejects users outside ``roles``.

    Raises:
        AuthorizationError: If the user's role is not listed
    """
    if user.role not in roles:
        logger.warning(
            f"Access denied: role {user.role.value} not in {[r.value for r in roles]}",
            extra={"chat_id": user.chat_id}
        )
        raise AuthorizationError(details={"role": user.role.value})


def require_staff(user: User) -> None:
    require_role(user, Role.MANAGER, Role.ADMIN)


async def set_role(chat_id: int, role: Role) -> User:
    """
    Grants ``role`` to a known user.

    Args:
        chat_id: Target chat id
        role: New role

    Returns:
        Updated user

    Raises:
        ResourceNotFoundError: If the chat id never talked to the bot
    """
    users = get_store().users
    user = await users.get(chat_id)
    if not user:
        raise ResourceNotFoundError(f"User {chat_id} not found", details={"chat_id": chat_id})

    if user.role != role:
        previous = user.role
        user.role = role
        await users.save(user)
        logger.info(f"Role changed {previous.value} -> {role.value}", extra={"chat_id": chat_id})
    return user


async def promote_to_manager(actor: User, chat_id: int) -> User:
    """
    Lets an ADMIN grant MANAGER access to another user.

    Raises:
        AuthorizationError: If ``actor`` is not an ADMIN
        ResourceNotFoundError: If the target is unknown
        ValidationError: If the target already is an ADMIN
    """
    require_role(actor, Role.ADMIN)

    target = await get_user(chat_id)
    if not target:
        raise ResourceNotFoundError(f"User {chat_id} not found", details={"chat_id": chat_id})
    if target.role == Role.ADMIN:
        raise ValidationError(f"{target.display_name} is already an admin")

    return await set_role(chat_id, Role.MANAGER)


async def list_admins() -> List[User]:
    return await get_store().users.list_by_role(Role.ADMIN)


async def save_contact(user: User, phone: Optional[str] = None, address: Optional[str] = None) -> User:
    """Remembers the checkout phone and address on the user document."""
    if phone:
        user.phone = phone
    if address:
        user.address = address
    await get_store().users.save(user)
    return user


async def save_catalog_cursor(user: User, slug: Optional[str], page: int = 0) -> User:
    """Remembers the last category page shown, for the "more" button."""
    user.catalog_slug = slug
    user.catalog_page = page
    await get_store().users.save(user)
    return user


async def change_role(actor: User, chat_id: int, role: Role) -> Tuple[Role, User]:
    """
    Lets an ADMIN set any other user's role.

    Returns:
        (previous role, updated user)

    Raises:
        AuthorizationError: If ``actor`` is not an ADMIN
        ResourceNotFoundError: If the target is unknown
        ValidationError: If the admin targets themselves or demotes a
            configured admin
    """
    require_role(actor, Role.ADMIN)
    if chat_id == actor.chat_id:
        raise ValidationError("You can't change your own role")
    if chat_id in settings.ADMIN_CHAT_IDS and role != Role.ADMIN:
        raise ValidationError(f"{chat_id} is listed in ADMIN_CHAT_IDS and stays an admin")

    target = await get_user(chat_id)
    if not target:
        raise ResourceNotFoundError(f"User {chat_id} not found", details={"chat_id": chat_id})

    previous = target.role
    return previous, await set_role(chat_id, role)


async def list_users_page(page: int, size: int) -> Page[User]:
    users = get_store().users
    total = await users.count()
    page = min(max(page, 0), max(0, (total - 1) // size))
    items = await users.list_all(offset=page * size, limit=size)
    return Page(items=items, page=page, size=size, total=total)
