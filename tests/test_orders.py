from decimal import Decimal

import pytest

from conftest import (
    ADMIN_ID,
    CUSTOMER_ID,
    MANAGER_ID,
    OTHER_CUSTOMER_ID,
    make_product,
    make_user,
)
from storefront.core.exceptions import AuthorizationError, InsufficientStockError, ValidationError
from storefront.models.order import OrderStatus, can_transition
from storefront.models.user import Role
from storefront.services import cart_service, order_service
from storefront.services.notification_service import new_order_notifications


async def _place_cart_order(customer, *products):
    for product in products:
        await cart_service.add_to_cart(customer.chat_id, product.id, 1)
    return await order_service.create_orders_from_cart(customer, "1 Main St", "+79001234567")


@pytest.mark.asyncio
async def test_checkout_creates_one_order_per_line(store):
    admin = await make_user(ADMIN_ID, Role.ADMIN)
    second_admin = await make_user(ADMIN_ID + 1, Role.ADMIN)
    customer = await make_user(CUSTOMER_ID)
    first = await make_product(name="A", price="10", stock=3)
    second = await make_product(name="B", price="20", stock=3)

    await cart_service.add_to_cart(CUSTOMER_ID, first.id, 2)
    await cart_service.add_to_cart(CUSTOMER_ID, second.id, 1)

    orders = await order_service.create_orders_from_cart(
        customer, "1 Main St", "+79001234567", comment="Ring twice"
    )

    assert len(orders) == 2
    assert all(order.status == OrderStatus.NEW for order in orders)
    assert [order.total for order in orders] == [Decimal("20"), Decimal("20")]
    assert orders[0].items[0].product_name == "A"
    assert await cart_service.is_cart_empty(CUSTOMER_ID)

    # Stock was taken at commit
    assert (await store.products.get(first.id)).stock == 1
    assert (await store.products.get(second.id)).stock == 2

    notifications = await new_order_notifications(orders, customer)
    assert len(notifications) == 4
    recipients = sorted(n.chat_id for n in notifications)
    assert recipients == sorted([admin.chat_id, second_admin.chat_id] * 2)


@pytest.mark.asyncio
async def test_checkout_of_empty_cart_is_rejected(store):
    customer = await make_user(CUSTOMER_ID)
    with pytest.raises(ValidationError):
        await order_service.create_orders_from_cart(customer, "1 Main St", "+79001234567")


@pytest.mark.asyncio
async def test_insufficient_stock_is_all_or_nothing(store, monkeypatch):
    customer = await make_user(CUSTOMER_ID)
    plenty = await make_product(name="Plenty", stock=5)
    scarce = await make_product(name="Scarce", stock=1)
    await cart_service.add_to_cart(CUSTOMER_ID, plenty.id, 2)
    await cart_service.add_to_cart(CUSTOMER_ID, scarce.id, 1)

    reserve = store.products.reserve_stock

    async def sold_out_meanwhile(product_id, quantity):
        # Another buyer takes the last unit between the cart read and the commit
        if product_id == scarce.id:
            return False
        return await reserve(product_id, quantity)

    monkeypatch.setattr(store.products, "reserve_stock", sold_out_meanwhile)

    with pytest.raises(InsufficientStockError):
        await order_service.create_orders_from_cart(customer, "1 Main St", "+79001234567")

    assert (await store.products.get(plenty.id)).stock == 5
    assert await store.orders.count() == 0
    assert len((await cart_service.get_cart(CUSTOMER_ID)).entries) == 2


@pytest.mark.asyncio
async def test_direct_order_takes_stock(store):
    customer = await make_user(CUSTOMER_ID)
    product = await make_product(stock=1)

    order = await order_service.create_direct_order(customer, product.id, "1 Main St", "+79001234567")
    assert order.status == OrderStatus.NEW
    assert (await store.products.get(product.id)).stock == 0

    with pytest.raises(InsufficientStockError):
        await order_service.create_direct_order(customer, product.id, "1 Main St", "+79001234567")
    assert await store.orders.count() == 1


@pytest.mark.asyncio
async def test_complete_on_new_order_is_rejected(store):
    admin = await make_user(ADMIN_ID, Role.ADMIN)
    customer = await make_user(CUSTOMER_ID)
    [order] = await _place_cart_order(customer, await make_product())

    outcome = await order_service.complete_order(admin, order.id)

    assert not outcome.success
    assert (await order_service.get_order(order.id)).status == OrderStatus.NEW


@pytest.mark.asyncio
async def test_lifecycle_and_absorbing_statuses(store):
    manager = await make_user(MANAGER_ID, Role.MANAGER)
    customer = await make_user(CUSTOMER_ID)
    [order] = await _place_cart_order(customer, await make_product())

    assert (await order_service.accept_order(manager, order.id)).success
    outcome = await order_service.complete_order(manager, order.id)
    assert outcome.success
    assert outcome.previous == OrderStatus.PROCESSING
    assert outcome.order.status == OrderStatus.COMPLETED

    for move in (order_service.accept_order, order_service.complete_order, order_service.cancel_order):
        assert not (await move(manager, order.id)).success
    assert (await order_service.get_order(order.id)).status == OrderStatus.COMPLETED


def test_transition_table():
    assert can_transition(OrderStatus.NEW, OrderStatus.PROCESSING)
    assert can_transition(OrderStatus.NEW, OrderStatus.CANCELLED)
    assert can_transition(OrderStatus.PROCESSING, OrderStatus.COMPLETED)
    assert not can_transition(OrderStatus.NEW, OrderStatus.COMPLETED)
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.NEW)
    assert not can_transition(OrderStatus.COMPLETED, OrderStatus.CANCELLED)


@pytest.mark.asyncio
async def test_cancel_returns_stock(store):
    admin = await make_user(ADMIN_ID, Role.ADMIN)
    customer = await make_user(CUSTOMER_ID)
    product = await make_product(stock=2)
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 2)
    [order] = await order_service.create_orders_from_cart(customer, "1 Main St", "+79001234567")
    assert (await store.products.get(product.id)).stock == 0

    outcome = await order_service.cancel_order(admin, order.id)

    assert outcome.success
    assert (await store.products.get(product.id)).stock == 2


@pytest.mark.asyncio
async def test_customers_cannot_change_status(store):
    customer = await make_user(CUSTOMER_ID)
    [order] = await _place_cart_order(customer, await make_product())

    with pytest.raises(AuthorizationError):
        await order_service.accept_order(customer, order.id)
    assert (await order_service.get_order(order.id)).status == OrderStatus.NEW


@pytest.mark.asyncio
async def test_customers_read_only_their_own_orders(store):
    manager = await make_user(MANAGER_ID, Role.MANAGER)
    customer = await make_user(CUSTOMER_ID)
    other = await make_user(OTHER_CUSTOMER_ID)
    [order] = await _place_cart_order(customer, await make_product())

    assert (await order_service.get_order_for(customer, order.id)).id == order.id
    assert (await order_service.get_order_for(manager, order.id)).id == order.id
    with pytest.raises(AuthorizationError):
        await order_service.get_order_for(other, order.id)


@pytest.mark.asyncio
async def test_order_lists_are_newest_first(store):
    customer = await make_user(CUSTOMER_ID)
    first = await make_product(name="A")
    second = await make_product(name="B")
    await _place_cart_order(customer, first)
    await _place_cart_order(customer, second)

    page = await order_service.list_user_orders(CUSTOMER_ID, page=0, size=1)
    assert page.total == 2
    assert page.has_next
    assert page.items[0].items[0].product_name == "B"
