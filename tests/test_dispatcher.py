import pytest

from conftest import (
    ADMIN_ID,
    CUSTOMER_ID,
    MANAGER_ID,
    callback,
    load_user,
    make_category,
    make_product,
    make_user,
    text,
    texts,
)
from storefront.flow.callbacks import VERB_ARGS, Verb
from storefront.flow.dispatcher import Dispatcher, default_handlers, dispatch_update
from storefront.flow.handlers.base import Handler
from storefront.flow.handlers.cart import CartHandler
from storefront.flow.states import STATE_METADATA, ConversationState
from storefront.models.user import Role
from storefront.schemas.replies import Reply


def test_every_verb_has_exactly_one_handler():
    dispatcher = Dispatcher()
    assert set(dispatcher.verb_owners) == set(VERB_ARGS)

    claimed = [verb for handler in default_handlers() for verb in handler.verbs]
    assert len(claimed) == len(set(claimed))


def test_every_wizard_step_has_one_owner():
    dispatcher = Dispatcher()
    expected = set(STATE_METADATA) - {ConversationState.NORMAL}
    assert set(dispatcher.step_owners) == expected


def test_duplicate_verb_claim_is_rejected():
    class Greedy(Handler):
        name = "greedy"
        verbs = frozenset({Verb.CART})

        async def handle(self, ctx):
            return Reply.text("mine")

    with pytest.raises(ValueError, match="cart"):
        Dispatcher(default_handlers() + [Greedy()])


def test_unclaimed_verb_is_rejected():
    handlers = [h for h in default_handlers() if not isinstance(h, CartHandler)]
    with pytest.raises(ValueError, match="without a handler"):
        Dispatcher(handlers)


@pytest.mark.asyncio
async def test_first_contact_creates_user(dispatcher):
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "/start"))

    user = await load_user(CUSTOMER_ID)
    assert user is not None
    assert user.role == Role.USER
    assert "Welcome to the shop, Test" in reply.messages[0].text


@pytest.mark.asyncio
async def test_configured_admin_is_bootstrapped(dispatcher):
    reply = await dispatcher.dispatch(text(ADMIN_ID, "/start"))

    assert (await load_user(ADMIN_ID)).role == Role.ADMIN
    labels = [b.text for row in reply.messages[0].reply_keyboard for b in row]
    assert "⚙️ Admin panel" in labels


@pytest.mark.asyncio
async def test_unknown_callback_is_unhandled(dispatcher):
    await make_user(CUSTOMER_ID)
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "teleport:1"))

    assert not reply.handled
    assert reply.messages == []
    assert (await load_user(CUSTOMER_ID)).state is None


@pytest.mark.asyncio
async def test_free_text_gets_the_fallback(dispatcher):
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "hello there"))
    assert "didn't understand" in reply.messages[0].text


@pytest.mark.asyncio
async def test_menu_labels_route(dispatcher):
    await make_category("Shoes")
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "🛍 Catalog"))

    buttons = reply.messages[0].inline_keyboard
    assert buttons[0][0].callback_data == "category:shoes"


@pytest.mark.asyncio
async def test_customers_are_denied_staff_actions(dispatcher):
    await make_user(CUSTOMER_ID)
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "admin_products"))
    assert "permission" in texts(reply)

    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "/admin"))
    assert "permission" in texts(reply)


@pytest.mark.asyncio
async def test_missing_entity_is_reported(dispatcher):
    await make_user(MANAGER_ID, Role.MANAGER)
    reply = await dispatcher.dispatch(callback(MANAGER_ID, "edit_product:999"))

    assert "Product #999 not found" in texts(reply)
    assert (await load_user(MANAGER_ID)).state is None


@pytest.mark.asyncio
async def test_handler_crash_becomes_generic_error(store):
    class Broken(Handler):
        name = "broken"

        def can_handle(self, ctx):
            return not ctx.is_callback

        async def handle(self, ctx):
            raise RuntimeError("boom")

    dispatcher = Dispatcher([Broken()] + default_handlers())
    reply = await dispatcher.dispatch(text(CUSTOMER_ID, "anything"))

    assert reply.handled
    assert "Something went wrong" in reply.messages[0].text


@pytest.mark.asyncio
async def test_catalog_paging_with_more(dispatcher):
    shoes = await make_category("Shoes")
    for i in range(4):
        await make_product(name=f"Shoe {i}", category=shoes)

    first = await dispatcher.dispatch(callback(CUSTOMER_ID, "category:shoes"))
    # Three cards plus the footer
    assert len(first.messages) == 4
    assert "page 1 of 2" in first.messages[-1].text

    second = await dispatcher.dispatch(callback(CUSTOMER_ID, "more"))
    assert len(second.messages) == 2
    assert "Shoe 3" in second.messages[0].text

    last = await dispatcher.dispatch(callback(CUSTOMER_ID, "more"))
    assert last.callback_answer == "That's everything in this category."


@pytest.mark.asyncio
async def test_add_to_cart_from_product_card(dispatcher):
    product = await make_product(name="Sneakers", stock=1)

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, f"add_to_cart:{product.id}"))
    assert reply.callback_answer.startswith("✅ Added to cart")

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, f"add_to_cart:{product.id}"))
    assert "only 1 in stock" in reply.callback_answer


@pytest.mark.asyncio
async def test_cart_buttons(dispatcher):
    product = await make_product(stock=2)
    await dispatcher.dispatch(callback(CUSTOMER_ID, f"add_to_cart:{product.id}"))
    cart = await dispatcher.dispatch(callback(CUSTOMER_ID, "cart"))
    plus = cart.messages[0].inline_keyboard[0][2].callback_data
    assert plus.startswith("cart_plus:")

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, plus))
    assert "200.00" in reply.messages[0].text

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, plus))
    assert reply.callback_answer == "⚠️ Not enough stock for that quantity."

    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, "cart_clear"))
    assert reply.callback_answer == "🗑 Cart cleared."


@pytest.mark.asyncio
async def test_manager_promotion(dispatcher):
    await make_user(ADMIN_ID, Role.ADMIN)
    await make_user(CUSTOMER_ID)

    await dispatcher.dispatch(callback(ADMIN_ID, "add_manager"))
    assert (await load_user(ADMIN_ID)).state == "ADDING_MANAGER"

    reply = await dispatcher.dispatch(text(ADMIN_ID, "not a number"))
    assert "chat id is a number" in texts(reply)

    reply = await dispatcher.dispatch(text(ADMIN_ID, str(CUSTOMER_ID)))
    assert (await load_user(CUSTOMER_ID)).role == Role.MANAGER
    assert (await load_user(ADMIN_ID)).state is None
    assert [n.chat_id for n in reply.notifications] == [CUSTOMER_ID]


@pytest.mark.asyncio
async def test_managers_cannot_promote(dispatcher):
    await make_user(MANAGER_ID, Role.MANAGER)
    reply = await dispatcher.dispatch(callback(MANAGER_ID, "add_manager"))

    assert "permission" in texts(reply)
    assert (await load_user(MANAGER_ID)).state is None


@pytest.mark.asyncio
async def test_dispatch_update_delivers_through_sink(dispatcher, sink):
    event = callback(CUSTOMER_ID, "cart")
    reply = await dispatch_update(event, sink, dispatcher)

    assert sink.sent == [(CUSTOMER_ID, reply, event.callback_id)]


@pytest.mark.asyncio
async def test_dispatch_update_answers_unhandled_callbacks(dispatcher, sink):
    await dispatch_update(callback(CUSTOMER_ID, "bogus"), sink, dispatcher)

    # The spinner is still stopped
    [(chat_id, reply, callback_id)] = sink.sent
    assert callback_id is not None
    assert not reply.handled


@pytest.mark.asyncio
async def test_staff_order_buttons(dispatcher):
    from storefront.services import cart_service, order_service

    await make_user(MANAGER_ID, Role.MANAGER)
    customer = await make_user(CUSTOMER_ID)
    product = await make_product()
    await cart_service.add_to_cart(CUSTOMER_ID, product.id, 1)
    [order] = await order_service.create_orders_from_cart(customer, "1 Main St", "+79001234567")

    reply = await dispatcher.dispatch(callback(MANAGER_ID, f"complete_order:{order.id}"))
    assert "can't be completed" in reply.callback_answer
    assert reply.notifications == []

    reply = await dispatcher.dispatch(callback(MANAGER_ID, f"accept_order:{order.id}"))
    assert reply.callback_answer == f"Order #{order.id} accepted"
    [notice] = reply.notifications
    assert notice.chat_id == CUSTOMER_ID
    assert "Processing" in notice.text

    # Customers see their own order without staff buttons
    reply = await dispatcher.dispatch(callback(CUSTOMER_ID, f"order_details:{order.id}"))
    assert [b.callback_data for row in reply.messages[0].inline_keyboard for b in row] == ["my_orders"]
