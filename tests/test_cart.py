from decimal import Decimal

import pytest

from conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID, make_category, make_product
from storefront.services import cart_service, catalog_service


@pytest.mark.asyncio
async def test_add_merges_lines_and_respects_stock(store):
    product = await make_product(price="100", stock=5)

    assert await cart_service.add_to_cart(CUSTOMER_ID, product.id, 2)
    assert await cart_service.add_to_cart(CUSTOMER_ID, product.id, 3)

    cart = await cart_service.get_cart(CUSTOMER_ID)
    assert len(cart.entries) == 1
    assert cart.entries[0].line.quantity == 5
    assert cart.total == Decimal("500")

    # One more would exceed stock
    assert not await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)
    cart = await cart_service.get_cart(CUSTOMER_ID)
    assert cart.entries[0].line.quantity == 5


@pytest.mark.asyncio
async def test_add_rejects_non_positive_and_missing_products(store):
    product = await make_product(stock=5)

    assert not await cart_service.add_to_cart(CUSTOMER_ID, product.id, 0)
    assert not await cart_service.add_to_cart(CUSTOMER_ID, product.id, -1)
    assert not await cart_service.add_to_cart(CUSTOMER_ID, 999, 1)
    assert await cart_service.is_cart_empty(CUSTOMER_ID)


@pytest.mark.asyncio
async def test_set_quantity_zero_removes_line(store):
    product = await make_product(stock=5)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 2)
    line = (await cart_service.get_cart(CUSTOMER_ID)).entries[0].line

    assert await cart_service.set_quantity(CUSTOMER_ID, line.id, 0)
    assert await cart_service.is_cart_empty(CUSTOMER_ID)


@pytest.mark.asyncio
async def test_set_quantity_above_stock_is_refused(store):
    product = await make_product(stock=3)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)
    line = (await cart_service.get_cart(CUSTOMER_ID)).entries[0].line

    assert not await cart_service.set_quantity(CUSTOMER_ID, line.id, 4)
    assert await cart_service.set_quantity(CUSTOMER_ID, line.id, 3)
    assert (await cart_service.get_cart(CUSTOMER_ID)).entries[0].line.quantity == 3


@pytest.mark.asyncio
async def test_lines_belong_to_their_owner(store):
    product = await make_product(stock=5)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)
    line = (await cart_service.get_cart(CUSTOMER_ID)).entries[0].line

    assert not await cart_service.set_quantity(OTHER_CUSTOMER_ID, line.id, 2)
    assert not await cart_service.remove_line(OTHER_CUSTOMER_ID, line.id)
    assert not await cart_service.change_quantity(OTHER_CUSTOMER_ID, line.id, 1)
    assert (await cart_service.get_cart(CUSTOMER_ID)).entries[0].line.quantity == 1


@pytest.mark.asyncio
async def test_clear_cart_empties_and_totals_zero(store):
    first = await make_product(name="A", stock=5)
    second = await make_product(name="B", stock=5)
    await cart_service.add_to_cart(CUSTOMER_ID, first.id, 1)
    await cart_service.add_to_cart(CUSTOMER_ID, second.id, 2)

    assert await cart_service.clear_cart(CUSTOMER_ID) == 2
    assert await cart_service.cart_total(CUSTOMER_ID) == Decimal("0")
    assert await cart_service.is_cart_empty(CUSTOMER_ID)


@pytest.mark.asyncio
async def test_cart_reads_clamp_to_live_stock(store):
    shoes = await make_category()
    product = await make_product(stock=5, category=shoes)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 4)

    await catalog_service.update_product(product.id, stock=2)
    cart = await cart_service.get_cart(CUSTOMER_ID)
    assert cart.entries[0].line.quantity == 2

    await catalog_service.update_product(product.id, stock=0)
    assert await cart_service.is_cart_empty(CUSTOMER_ID)


@pytest.mark.asyncio
async def test_deleting_a_product_drops_its_cart_lines(store):
    product = await make_product(stock=5)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)

    await catalog_service.delete_product(product.id)
    assert await store.carts.list_lines(CUSTOMER_ID) == []
