import pytest

from conftest import (
    ADMIN_ID,
    MANAGER_ID,
    callback,
    load_user,
    make_category,
    make_product,
    make_user,
    text,
    texts,
)
from storefront.core.exceptions import ValidationError
from storefront.db.repositories import get_store
from storefront.models.catalog import DEFAULT_CATEGORY_DESCRIPTION, slugify
from storefront.models.user import Role
from storefront.services import catalog_service
from storefront.services.catalog_service import DeleteResult


@pytest.mark.asyncio
async def test_create_category_is_idempotent_by_name(store):
    shoes = await catalog_service.create_category("Shoes")
    assert shoes.slug == "shoes"
    assert shoes.description == DEFAULT_CATEGORY_DESCRIPTION

    again = await catalog_service.create_category("shoes ")
    assert again.id == shoes.id
    assert len(await catalog_service.list_categories()) == 1


def test_slugify():
    assert slugify("Running Shoes!") == "running-shoes"
    assert slugify("  Men's   Boots ") == "mens-boots"
    assert slugify("Обувь") == "category"


@pytest.mark.asyncio
async def test_slugs_stay_unique(store):
    first = await catalog_service.create_category("Обувь")
    second = await catalog_service.create_category("Одежда")
    assert first.slug == "category"
    assert second.slug == "category-2"


@pytest.mark.asyncio
async def test_rename_regenerates_slug_and_rejects_duplicates(store):
    shoes = await catalog_service.create_category("Shoes")
    await catalog_service.create_category("Boots")

    renamed = await catalog_service.update_category(shoes.id, name="Sneakers")
    assert renamed.slug == "sneakers"

    with pytest.raises(ValidationError):
        await catalog_service.update_category(shoes.id, name="boots")


@pytest.mark.asyncio
async def test_delete_refused_while_products_remain(store):
    shoes = await make_category("Shoes")
    product = await make_product(category=shoes)

    assert await catalog_service.delete_category(shoes.id) == DeleteResult.HAS_PRODUCTS

    await catalog_service.delete_product(product.id)
    assert await catalog_service.delete_category(shoes.id) == DeleteResult.DELETED
    assert await catalog_service.delete_category(shoes.id) == DeleteResult.NOT_FOUND


@pytest.mark.asyncio
async def test_add_category_wizard(dispatcher):
    await make_user(MANAGER_ID, Role.MANAGER)
    await make_category("Boots")

    await dispatcher.dispatch(callback(MANAGER_ID, "add_category"))
    assert (await load_user(MANAGER_ID)).state == "ADDING_CATEGORY_NAME"

    reply = await dispatcher.dispatch(text(MANAGER_ID, "BOOTS"))
    assert "already exists" in texts(reply)
    assert (await load_user(MANAGER_ID)).state == "ADDING_CATEGORY_NAME"

    await dispatcher.dispatch(text(MANAGER_ID, "Running Shoes"))
    reply = await dispatcher.dispatch(text(MANAGER_ID, "-"))
    assert "/running-shoes" in texts(reply)

    created = await catalog_service.get_category_by_slug("running-shoes")
    assert created.description == DEFAULT_CATEGORY_DESCRIPTION
    assert (await load_user(MANAGER_ID)).state is None


@pytest.mark.asyncio
async def test_edit_category_wizard(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    shoes = await make_category("Shoes")
    await make_category("Boots")

    reply = await dispatcher.dispatch(callback(ADMIN_ID, f"edit_category:{shoes.id}"))
    assert "Slug: shoes" in texts(reply)

    await dispatcher.dispatch(text(ADMIN_ID, "1"))
    reply = await dispatcher.dispatch(text(ADMIN_ID, "Boots"))
    assert "already exists" in texts(reply)

    reply = await dispatcher.dispatch(text(ADMIN_ID, "Sneakers"))
    assert "Name: Sneakers" in texts(reply)

    await dispatcher.dispatch(text(ADMIN_ID, "2"))
    await dispatcher.dispatch(text(ADMIN_ID, "All kinds of sneakers"))
    reply = await dispatcher.dispatch(text(ADMIN_ID, "4"))
    assert "saved" in texts(reply)

    saved = await get_store().categories.get(shoes.id)
    assert saved.name == "Sneakers"
    assert saved.slug == "sneakers"
    assert saved.description == "All kinds of sneakers"


@pytest.mark.asyncio
async def test_delete_from_edit_menu_is_refused_with_products(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    shoes = await make_category("Shoes")
    await make_product(category=shoes)

    await dispatcher.dispatch(callback(ADMIN_ID, f"edit_category:{shoes.id}"))
    reply = await dispatcher.dispatch(text(ADMIN_ID, "3"))

    assert "still has 1 product(s)" in texts(reply)
    assert await get_store().categories.get(shoes.id) is not None
    assert (await load_user(ADMIN_ID)).state == f"EDITING_CATEGORY_MENU:{shoes.id}"


@pytest.mark.asyncio
async def test_delete_button(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    shoes = await make_category("Shoes")

    reply = await dispatcher.dispatch(callback(ADMIN_ID, f"delete_category:{shoes.id}"))

    assert reply.callback_answer == "🗑 Category Shoes deleted."
    assert await get_store().categories.get(shoes.id) is None
