"""
storefront/services/order_service.py

Purpose: Order creation and lifecycle

- Checkout commit: reserve stock for every line (all or nothing), create one
  order per cart line, clear the cart
- Direct single-product purchase
- Role-gated status transitions with compare-and-set
- Stock returned when an order is cancelled
- Customers read only their own orders
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from storefront.core.exceptions import (
    AuthorizationError,
    InsufficientStockError,
    ResourceNotFoundError,
    ValidationError,
)
from storefront.core.logging import LogContext, get_logger
from storefront.db.repositories import get_store
from storefront.models.order import Order, OrderItem, OrderStatus, can_transition
from storefront.models.page import Page
from storefront.models.user import User
from storefront.services import cart_service
from storefront.services.user_service import require_staff

logger = get_logger(__name__)


@dataclass
class TransitionOutcome:
    success: bool
    order: Order
    previous: OrderStatus
    reason: str = ""


async def _reserve(items: List[OrderItem]) -> None:
    """
    Decrements stock for every item, undoing earlier reservations on failure.

    Raises:
        InsufficientStockError: If any item cannot be covered
    """
    products = get_store().products
    reserved: List[Tuple[int, int]] = []

    for item in items:
        if await products.reserve_stock(item.product_id, item.quantity):
            reserved.append((item.product_id, item.quantity))
            continue

        await _release(reserved)
        raise InsufficientStockError(
            f"Not enough stock for {item.product_name}.",
            details={"product_id": item.product_id, "quantity": item.quantity}
        )


async def _release(reserved: List[Tuple[int, int]]) -> None:
    products = get_store().products
    for product_id, quantity in reserved:
        if not await products.release_stock(product_id, quantity):
            logger.warning(f"Could not return {quantity} unit(s) to deleted product #{product_id}")


async def _commit(orders: List[Order]) -> List[Order]:
    """Reserves stock for ``orders`` and persists them."""
    items = [item for order in orders for item in order.items]
    await _reserve(items)

    saved: List[Order] = []
    try:
        for order in orders:
            saved.append(await get_store().orders.insert(order))
    except Exception:
        logger.error("Order insert failed, returning reserved stock", exc_info=True)
        await _release([(item.product_id, item.quantity) for item in items])
        raise
    return saved


async def create_orders_from_cart(
    user: User,
    address: str,
    phone: str,
    comment: Optional[str] = None
) -> List[Order]:
    """
    Places one NEW order per cart line and clears the cart.

    Args:
        user: Customer
        address: Delivery address
        phone: Contact phone
        comment: Optional customer comment

    Returns:
        Created orders, in cart order

    Raises:
        ValidationError: If the cart is empty
        InsufficientStockError: If stock ran out since the items were added
    """
    with LogContext(chat_id=user.chat_id):
        cart = await cart_service.get_cart(user.chat_id)
        if cart.is_empty:
            raise ValidationError("Your cart is empty")

        orders = [
            Order(
                user_id=user.chat_id,
                items=[OrderItem(
                    product_id=entry.product.id,
                    product_name=entry.product.name,
                    quantity=entry.line.quantity,
                    unit_price=entry.product.price,
                )],
                address=address,
                phone=phone,
                comment=comment,
            )
            for entry in cart.entries
        ]

        saved = await _commit(orders)
        await cart_service.clear_cart(user.chat_id)

        logger.info(f"🧾 Checkout created orders {[o.id for o in saved]}")
        return saved


async def create_direct_order(
    user: User,
    product_id: int,
    address: str,
    phone: str,
    comment: Optional[str] = None,
    quantity: int = 1
) -> Order:
    """
    Places a single NEW order for one product, bypassing the cart.

    Raises:
        ResourceNotFoundError: If the product was deleted
        InsufficientStockError: If it sold out
    """
    with LogContext(chat_id=user.chat_id):
        product = await get_store().products.get(product_id)
        if not product:
            raise ResourceNotFoundError(
                f"Product #{product_id} not found", details={"product_id": product_id}
            )

        order = Order(
            user_id=user.chat_id,
            items=[OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
            )],
            address=address,
            phone=phone,
            comment=comment,
        )
        [saved] = await _commit([order])

        logger.info(f"🧾 Direct purchase created order #{saved.id}")
        return saved


async def get_order(order_id: int) -> Order:
    order = await get_store().orders.get(order_id)
    if not order:
        raise ResourceNotFoundError(f"Order #{order_id} not found", details={"order_id": order_id})
    return order


async def get_order_for(user: User, order_id: int) -> Order:
    """
    Loads an order the user may see: their own, or any order for staff.

    Raises:
        ResourceNotFoundError: If the order does not exist
        AuthorizationError: If a customer asks for someone else's order
    """
    order = await get_order(order_id)
    if order.user_id != user.chat_id and not user.is_staff:
        logger.warning(
            f"Customer tried to read order #{order_id} of another user",
            extra={"chat_id": user.chat_id}
        )
        raise AuthorizationError("You can only view your own orders")
    return order


async def transition_order(actor: User, order_id: int, target: OrderStatus) -> TransitionOutcome:
    """
    Moves an order along the lifecycle table.

    Args:
        actor: Staff member requesting the change
        order_id: Order to change
        target: Requested status

    Returns:
        TransitionOutcome; success is False (status unchanged) when the table
        forbids the move or another staff member changed it first

    Raises:
        AuthorizationError: If ``actor`` is not MANAGER or ADMIN
        ResourceNotFoundError: If the order does not exist
    """
    require_staff(actor)

    with LogContext(chat_id=actor.chat_id, order_id=order_id):
        order = await get_order(order_id)
        previous = order.status

        if not can_transition(previous, target):
            logger.info(f"Rejected order transition {previous.value} -> {target.value}")
            return TransitionOutcome(
                success=False,
                order=order,
                previous=previous,
                reason=f"{previous.value} -> {target.value} is not allowed",
            )

        updated = await get_store().orders.transition(order_id, previous, target)
        if updated is None:
            current = await get_order(order_id)
            logger.info(f"Lost order transition race: status is now {current.status.value}")
            return TransitionOutcome(
                success=False,
                order=current,
                previous=current.status,
                reason="The order was changed by someone else",
            )

        if target == OrderStatus.CANCELLED:
            await _release([(item.product_id, item.quantity) for item in updated.items])

        logger.info(f"📦 Order #{order_id}: {previous.value} -> {target.value}")
        return TransitionOutcome(success=True, order=updated, previous=previous)


async def accept_order(actor: User, order_id: int) -> TransitionOutcome:
    return await transition_order(actor, order_id, OrderStatus.PROCESSING)


async def complete_order(actor: User, order_id: int) -> TransitionOutcome:
    return await transition_order(actor, order_id, OrderStatus.COMPLETED)


async def cancel_order(actor: User, order_id: int) -> TransitionOutcome:
    return await transition_order(actor, order_id, OrderStatus.CANCELLED)


async def list_user_orders(user_id: int, page: int, size: int) -> Page[Order]:
    orders = get_store().orders
    total = await orders.count_by_user(user_id)
    items = await orders.list_by_user(user_id, offset=page * size, limit=size)
    return Page(items=items, page=page, size=size, total=total)


async def list_orders(page: int, size: int, status: Optional[OrderStatus] = None) -> Page[Order]:
    orders = get_store().orders
    total = await orders.count(status)
    items = await orders.list_all(status, offset=page * size, limit=size)
    return Page(items=items, page=page, size=size, total=total)
