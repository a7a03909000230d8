"""
storefront/services/shop_service.py

Purpose: Shop settings (contacts, support, about, working hours)

- Read with defaults until staff first edit them
- One partial update per settings screen
"""

from typing import Any

from storefront.core.exceptions import ValidationError
from storefront.core.logging import get_logger
from storefront.db.repositories import get_store
from storefront.models.shop import ShopSettings

logger = get_logger(__name__)


async def get_shop_settings() -> ShopSettings:
    return await get_store().shop.get() or ShopSettings()


async def _update(**fields: Any) -> ShopSettings:
    empty = [name for name, value in fields.items() if not value]
    if empty:
        raise ValidationError("Shop settings can't be empty", details={"fields": empty})

    updated = await get_store().shop.update(fields)
    logger.info(f"🏪 Shop settings updated: {sorted(fields)}")
    return updated


async def update_contacts(phone: str, email: str, website: str) -> ShopSettings:
    return await _update(phone=phone, email=email, website=website)


async def update_support(text: str) -> ShopSettings:
    return await _update(support_info=text)


async def update_about(text: str) -> ShopSettings:
    return await _update(about_info=text)


async def update_hours(text: str) -> ShopSettings:
    """
    Stores the working hours.

    A typed backslash-n (``\\n``) becomes a line break so several lines fit
    in one message.
    """
    return await _update(working_hours=text.replace("\\n", "\n"))
