"""
storefront/flow/handlers/checkout.py

Handles: checkout wizard

Entry:
- cart_checkout (cart must not be empty)
- direct_buy:<id> (single product, bypasses the cart)

Steps:
WAITING_FOR_PHONE -> WAITING_FOR_ADDRESS -> WAITING_FOR_COMMENT -> CONFIRMING_ORDER

- Phone is skipped when the user already has one on file
- Commit reserves stock, creates one order per cart line (or one for a direct
  purchase), clears the cart and notifies every ADMIN
"""

from decimal import Decimal
from typing import Any, Dict, List

from storefront.core.exceptions import ResourceNotFoundError
from storefront.core.logging import get_logger
from storefront.flow.callbacks import Verb
from storefront.flow.handlers.base import (
    HandlerContext,
    WizardHandler,
    answer,
    commit_guard,
    main_menu_reply,
)
from storefront.flow.states import ConversationState, Flow, State, steps_of
from storefront.models.order import OrderItem
from storefront.schemas.replies import Reply
from storefront.schemas.updates import EventKind
from storefront.services import cart_service, catalog_service, order_service
from storefront.services.notification_service import new_order_notifications
from storefront.services.session_service import begin, get_scratch, reset, set_state
from storefront.services.user_service import save_contact
from storefront.utils import constants as c
from storefront.utils.formatting import esc, format_items, format_money
from storefront.utils.keyboards import (
    address_keyboard,
    cancel_keyboard,
    confirm_order_keyboard,
    phone_request_keyboard,
    skip_cancel_keyboard,
)
from storefront.utils.validation_utils import is_no, is_skip, is_yes, sanitize_input, validate_phone

logger = get_logger(__name__)

S = ConversationState

MODE_CART = "cart"
MODE_DIRECT = "direct"


class CheckoutHandler(WizardHandler):
    name = "checkout"
    verbs = frozenset({Verb.CART_CHECKOUT, Verb.DIRECT_BUY, Verb.CONFIRM_ORDER, Verb.CANCEL_ORDER})
    states = frozenset(steps_of(Flow.CHECKOUT))
    step_verbs = frozenset({Verb.CONFIRM_ORDER, Verb.CANCEL_ORDER})

    def accepts_callback(self, ctx: HandlerContext) -> bool:
        return ctx.verb in self.step_verbs and ctx.state.step == S.CONFIRMING_ORDER

    # ==============================================
    # ENTRY
    # ==============================================

    async def handle(self, ctx: HandlerContext) -> Reply:
        verb = ctx.verb

        if verb in (Verb.CONFIRM_ORDER, Verb.CANCEL_ORDER):
            # Button from a summary that was already answered or abandoned
            return answer(c.NOTHING_TO_CONFIRM_MESSAGE)

        if verb == Verb.CART_CHECKOUT:
            if await cart_service.is_cart_empty(ctx.chat_id):
                return answer(c.NOTHING_TO_CHECKOUT_MESSAGE)
            return await self._start(ctx, {"mode": MODE_CART})

        product = await catalog_service.get_product(ctx.action.id)
        if not product.in_stock:
            return answer(c.OUT_OF_STOCK_MESSAGE.format(product=esc(product.name)))
        return await self._start(ctx, {"mode": MODE_DIRECT, "product_id": product.id})

    async def _start(self, ctx: HandlerContext, scratch: Dict[str, Any]) -> Reply:
        user = ctx.user
        if user.phone:
            scratch["phone"] = user.phone
            await begin(user, State(S.WAITING_FOR_ADDRESS), scratch)
            return self._ask_address(ctx)

        await begin(user, State(S.WAITING_FOR_PHONE), scratch)
        return Reply.text(c.ASK_PHONE_MESSAGE, reply_keyboard=phone_request_keyboard())

    def _ask_address(self, ctx: HandlerContext) -> Reply:
        saved = ctx.user.address
        text = c.ASK_ADDRESS_SAVED_MESSAGE if saved else c.ASK_ADDRESS_MESSAGE
        return Reply.text(text, reply_keyboard=address_keyboard(saved))

    # ==============================================
    # STEPS
    # ==============================================

    async def handle_step(self, ctx: HandlerContext) -> Reply:
        step = ctx.state.step
        if step == S.WAITING_FOR_PHONE:
            return await self._phone(ctx)
        if step == S.WAITING_FOR_ADDRESS:
            return await self._address(ctx)
        if step == S.WAITING_FOR_COMMENT:
            return await self._comment(ctx)
        return await self._confirm(ctx)

    async def _phone(self, ctx: HandlerContext) -> Reply:
        raw = ctx.event.phone if ctx.event.kind == EventKind.CONTACT else ctx.text
        phone = validate_phone(raw)
        if not phone:
            return Reply.text(c.INVALID_PHONE_MESSAGE, reply_keyboard=phone_request_keyboard())

        scratch = {**get_scratch(ctx.user), "phone": phone}
        await set_state(ctx.user, State(S.WAITING_FOR_ADDRESS), scratch)
        return self._ask_address(ctx)

    async def _address(self, ctx: HandlerContext) -> Reply:
        address = sanitize_input(ctx.text) if ctx.event.kind != EventKind.PHOTO else ""
        if not address:
            return Reply.text(c.EMPTY_ADDRESS_MESSAGE, reply_keyboard=address_keyboard(ctx.user.address))

        scratch = {**get_scratch(ctx.user), "address": address}
        await set_state(ctx.user, State(S.WAITING_FOR_COMMENT), scratch)
        return Reply.text(c.ASK_COMMENT_MESSAGE, reply_keyboard=skip_cancel_keyboard())

    async def _comment(self, ctx: HandlerContext) -> Reply:
        comment = None if is_skip(ctx.text) else sanitize_input(ctx.text) or None
        scratch = {**get_scratch(ctx.user), "comment": comment}

        items = await self._preview_items(scratch, ctx)
        if not items:
            await reset(ctx.user, reason="checkout_cart_empty")
            return main_menu_reply(ctx.user, c.NOTHING_TO_CHECKOUT_MESSAGE)

        await set_state(ctx.user, State(S.CONFIRMING_ORDER), scratch)

        total = sum((item.subtotal for item in items), Decimal("0"))
        summary = c.CONFIRM_ORDER_MESSAGE.format(
            items=format_items(items),
            total=format_money(total),
            phone=esc(scratch.get("phone", "-")),
            address=esc(scratch.get("address", "-")),
            comment=esc(comment or "-"),
        )
        reply = Reply.text(summary, inline_keyboard=confirm_order_keyboard())
        reply.add(c.CONFIRM_HINT_MESSAGE, reply_keyboard=cancel_keyboard())
        return reply

    async def _preview_items(self, scratch: Dict[str, Any], ctx: HandlerContext) -> List[OrderItem]:
        if scratch.get("mode") == MODE_DIRECT:
            product = await catalog_service.get_product(_draft_int(scratch, "product_id"))
            return [OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=1,
                unit_price=product.price,
            )]

        cart = await cart_service.get_cart(ctx.chat_id)
        return [
            OrderItem(
                product_id=entry.product.id,
                product_name=entry.product.name,
                quantity=entry.line.quantity,
                unit_price=entry.product.price,
            )
            for entry in cart.entries
        ]

    async def _confirm(self, ctx: HandlerContext) -> Reply:
        if ctx.verb == Verb.CONFIRM_ORDER or (not ctx.is_callback and is_yes(ctx.text)):
            return await self._commit(ctx)

        if ctx.verb == Verb.CANCEL_ORDER or (not ctx.is_callback and is_no(ctx.text)):
            await reset(ctx.user, reason="order_declined")
            return main_menu_reply(ctx.user, c.ORDER_ABORTED_MESSAGE)

        return Reply.text(c.CONFIRM_HINT_MESSAGE)

    async def _commit(self, ctx: HandlerContext) -> Reply:
        user = ctx.user
        scratch = get_scratch(user)

        async with commit_guard(ctx):
            phone = _draft_str(scratch, "phone")
            address = _draft_str(scratch, "address")
            comment = scratch.get("comment")

            if scratch.get("mode") == MODE_DIRECT:
                orders = [await order_service.create_direct_order(
                    user, _draft_int(scratch, "product_id"), address, phone, comment
                )]
            else:
                orders = await order_service.create_orders_from_cart(user, address, phone, comment)

            await save_contact(user, phone=phone, address=address)
            await reset(user, reason="order_placed")

        numbers = ", ".join(f"#{order.id}" for order in orders)
        reply = main_menu_reply(user, c.ORDER_PLACED_MESSAGE.format(numbers=numbers))
        reply.callback_answer = "Order placed"
        reply.notifications.extend(await new_order_notifications(orders, user))
        return reply


def _draft_str(scratch: Dict[str, Any], key: str) -> str:
    value = scratch.get(key)
    if not value:
        raise ResourceNotFoundError("Checkout details were lost", details={"missing": key})
    return str(value)


def _draft_int(scratch: Dict[str, Any], key: str) -> int:
    try:
        return int(scratch[key])
    except (KeyError, TypeError, ValueError):
        raise ResourceNotFoundError("Checkout details were lost", details={"missing": key}) from None
