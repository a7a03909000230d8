import pytest

from conftest import (
    ADMIN_ID,
    CUSTOMER_ID,
    callback,
    contact,
    load_user,
    make_product,
    make_user,
    text,
    texts,
)
from storefront.db.repositories import get_store
from storefront.models.order import OrderStatus
from storefront.models.user import Role
from storefront.services import cart_service


@pytest.mark.asyncio
async def test_cart_checkout_end_to_end(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    first = await make_product(name="A", price="10", stock=5)
    second = await make_product(name="B", price="25.50", stock=5)
    await cart_service.add_to_cart(CUSTOMER_ID, first.id, 2)
    await cart_service.add_to_cart(CUSTOMER_ID, second.id, 1)

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "cart_checkout"))
    assert "phone number" in texts(reply)
    assert reply.messages[0].reply_keyboard[0][0].request_contact

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "12"))
    assert "doesn't look like a phone number" in texts(reply)

    await dispatcher.dispatch(contact(CUSTOMER_ID, "79001234567"))
    assert (await load_user(CUSTOMER_ID)).state == "WAITING_FOR_ADDRESS"

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "   "))
    assert "can't be empty" in texts(reply)

    await dispatcher.dispatch(text(CUSTOMER_ID, "1 Main St"))
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "Leave at the door"))
    summary = reply.messages[0].text
    assert "Total: 45.50" in summary
    assert "+79001234567" in summary
    assert reply.messages[0].inline_keyboard[0][0].callback_data == "confirm_order"

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "confirm_order"))
    assert "#1, #2" in texts(reply)
    assert reply.callback_answer == "Order placed"
    assert [n.chat_id for n in reply.notifications] == [ADMIN_ID, ADMIN_ID]

    orders = await get_store().orders.list_by_user(CUSTOMER_ID)
    assert len(orders) == 2
    assert {o.status for o in orders} == {OrderStatus.NEW}
    assert all(o.comment == "Leave at the door" for o in orders)
    assert await cart_service.is_cart_empty(CUSTOMER_ID)

    user = await load_user(CUSTOMER_ID)
    assert user.state is None
    assert user.phone == "+79001234567"
    assert user.address == "1 Main St"


@pytest.mark.asyncio
async def test_direct_buy_creates_one_order(dispatcher):
    product = await make_product(name="Cap", price="15", stock=3)
    await make_user(CUSTOMER_ID, phone="+79001234567", address="1 Main St")

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, f"direct_buy:{product.id}"))
    # Phone on file, straight to the address with the last one offered
    assert (await load_user(CUSTOMER_ID)).state == "WAITING_FOR_ADDRESS"
    assert reply.messages[0].reply_keyboard[0][0].text == "1 Main St"

    await dispatcher.dispatch(text(CUSTOMER_ID, "1 Main St"))
    await dispatcher.dispatch(text(CUSTOMER_ID, "skip"))
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "yes"))
    assert "#1" in texts(reply)

    [order] = await get_store().orders.list_by_user(CUSTOMER_ID)
    assert order.items[0].product_name == "Cap"
    assert order.items[0].quantity == 1
    assert order.comment is None
    assert (await get_store().products.get(product.id)).stock == 2


@pytest.mark.asyncio
async def test_declining_keeps_the_cart(dispatcher):
    product = await make_product(stock=5)
    await make_user(CUSTOMER_ID, phone="+79001234567")
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)

    await dispatcher.dispatch(callback(CUSTOMER_ID, "cart_checkout"))
    await dispatcher.dispatch(text(CUSTOMER_ID, "1 Main St"))
    await dispatcher.dispatch(text(CUSTOMER_ID, "-"))
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "cancel_order"))

    assert "Order cancelled" in texts(reply)
    assert await get_store().orders.count() == 0
    assert not await cart_service.is_cart_empty(CUSTOMER_ID)
    assert (await load_user(CUSTOMER_ID)).state is None


@pytest.mark.asyncio
async def test_stale_confirm_button(dispatcher):
    await make_user(CUSTOMER_ID)
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "confirm_order"))

    assert reply.callback_answer == "There is no order waiting for confirmation."
    assert await get_store().orders.count() == 0


@pytest.mark.asyncio
async def test_empty_cart_cannot_check_out(dispatcher):
    await make_user(CUSTOMER_ID)
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "cart_checkout"))

    assert "nothing to check out" in reply.callback_answer
    assert (await load_user(CUSTOMER_ID)).state is None


@pytest.mark.asyncio
async def test_stock_lost_before_confirm(dispatcher):
    product = await make_product(stock=1)
    await make_user(CUSTOMER_ID, phone="+79001234567")

    await dispatcher.dispatch(callback(CUSTOMER_ID, f"direct_buy:{product.id}"))
    await dispatcher.dispatch(text(CUSTOMER_ID, "1 Main St"))
    await dispatcher.dispatch(text(CUSTOMER_ID, "-"))

    # Someone else buys the last unit
    assert await get_store().products.reserve_stock(product.id, 1)

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "confirm_order"))
    assert "Not enough stock" in texts(reply)
    assert await get_store().orders.count() == 0
    assert (await load_user(CUSTOMER_ID)).state is None
