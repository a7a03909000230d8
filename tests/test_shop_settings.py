import pytest

from conftest import ADMIN_ID, CUSTOMER_ID, MANAGER_ID, callback, load_user, make_user, text, texts
from storefront.db.repositories import get_store
from storefront.models.shop import DEFAULT_EMAIL, DEFAULT_WORKING_HOURS
from storefront.models.user import Role, User
from storefront.services import shop_service
from storefront.utils import constants as c
from storefront.utils.keyboards import main_menu_keyboard
from storefront.utils.validation_utils import parse_contacts


@pytest.mark.asyncio
async def test_info_page_uses_defaults_until_edited(dispatcher):
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, c.INFO_LABEL))

    assert "About us" in texts(reply)
    assert DEFAULT_EMAIL in texts(reply)
    assert DEFAULT_WORKING_HOURS in texts(reply)
    assert reply.messages[0].reply_keyboard  # main menu
    assert await get_store().shop.get() is None


@pytest.mark.asyncio
async def test_support_command(dispatcher):
    await shop_service.update_support("Write to @shop_help")

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "/support"))
    assert "Write to @shop_help" in texts(reply)


def test_main_menu_has_info_and_support():
    labels = [b.text for row in main_menu_keyboard(User(chat_id=CUSTOMER_ID)) for b in row]
    assert c.INFO_LABEL in labels
    assert c.SUPPORT_LABEL in labels
    assert c.ADMIN_LABEL not in labels


@pytest.mark.asyncio
async def test_manager_edits_contacts(dispatcher):
    await make_user(MANAGER_ID, Role.MANAGER)

    reply = await dispatcher.dispatch(callback(MANAGER_ID, "shop_settings"))
    assert "Shop settings" in texts(reply)

    await dispatcher.dispatch(callback(MANAGER_ID, "edit_shop_contacts"))
    assert (await load_user(MANAGER_ID)).state == "EDITING_SHOP_CONTACTS"

    reply = await dispatcher.dispatch(text(MANAGER_ID, "+1 555 010 0000 | shop@example.org"))
    assert "exactly three parts" in texts(reply)
    assert (await load_user(MANAGER_ID)).state == "EDITING_SHOP_CONTACTS"

    reply = await dispatcher.dispatch(
        text(MANAGER_ID, "+1 555 010 0000 | shop@example.org | shop.example.org")
    )
    assert "Saved" in texts(reply)
    assert (await load_user(MANAGER_ID)).state is None

    shop = await get_store().shop.get()
    assert shop.phone == "+1 555 010 0000"
    assert shop.email == "shop@example.org"
    assert shop.website == "shop.example.org"
    # Untouched sections keep their defaults
    assert shop.working_hours == DEFAULT_WORKING_HOURS


@pytest.mark.asyncio
async def test_hours_accept_typed_line_breaks(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    await dispatcher.dispatch(callback(ADMIN_ID, "edit_shop_hours"))

    await dispatcher.dispatch(text(ADMIN_ID, "Mon-Fri 10-19\\nSat 11-16"))

    assert (await shop_service.get_shop_settings()).working_hours == "Mon-Fri 10-19\nSat 11-16"
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "/info"))
    assert "Mon-Fri 10-19\nSat 11-16" in texts(reply)


@pytest.mark.asyncio
async def test_about_text_is_escaped_on_the_info_page(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    await dispatcher.dispatch(callback(ADMIN_ID, "edit_shop_about"))

    reply = await dispatcher.dispatch(text(ADMIN_ID, "   "))
    assert "can't be empty" in texts(reply)

    await dispatcher.dispatch(text(ADMIN_ID, "Tools & <b>more</b>"))
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, c.INFO_LABEL))
    assert "Tools &amp; &lt;b&gt;more&lt;/b&gt;" in texts(reply)


@pytest.mark.asyncio
async def test_customers_cannot_edit_settings(dispatcher):
    await make_user(CUSTOMER_ID)

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "edit_shop_support"))
    assert "permission" in texts(reply)
    assert (await load_user(CUSTOMER_ID)).state is None


def test_parse_contacts():
    assert parse_contacts("+7 900 123-45-67 | a@b.co | b.co") == ("+7 900 123-45-67", "a@b.co", "b.co")
    assert parse_contacts("+7 900 123-45-67|a@b.co|b.co|extra") is None
    assert parse_contacts("call us | a@b.co | b.co") is None
    assert parse_contacts("+7 900 123-45-67 | not-an-email | b.co") is None
    assert parse_contacts("+7 900 123-45-67 | a@b.co | ") is None
    assert parse_contacts(None) is None
