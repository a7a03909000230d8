"""
storefront/services/cart_service.py

Purpose: Cart engine

- add / set_quantity / remove / clear / total
- A line never exceeds its product's live stock
- At most one line per (user, product)
- Stock check and line write happen under a per-product lock

Callers hold the per-user lock (see flow/dispatcher.py).
"""

from decimal import Decimal
from typing import Optional

from storefront.core.logging import get_logger
from storefront.db.repositories import get_store
from storefront.models.cart import Cart, CartEntry, CartLine
from storefront.services.locks import product_locks

logger = get_logger(__name__)


async def add_to_cart(user_id: int, product_id: int, quantity: int = 1) -> bool:
    """
    Adds ``quantity`` of a product, creating or incrementing the user's line.

    Args:
        user_id: Cart owner
        product_id: Product to add
        quantity: Units to add

    Returns:
        False (nothing changed) if quantity <= 0, the product is gone, or the
        resulting line would exceed stock
    """
    if quantity <= 0:
        return False

    store = get_store()
    async with product_locks.hold(product_id):
        product = await store.products.get(product_id)
        if not product:
            logger.info(f"Add to cart refused: product #{product_id} not found")
            return False

        line = await store.carts.find_line(user_id, product_id)
        requested = (line.quantity if line else 0) + quantity
        if requested > product.stock:
            logger.info(
                f"Add to cart refused: {requested} > stock {product.stock} for product #{product_id}",
                extra={"chat_id": user_id}
            )
            return False

        if line:
            await store.carts.set_quantity(line.id, requested)
        else:
            await store.carts.insert(CartLine(user_id=user_id, product_id=product_id, quantity=quantity))

    logger.info(f"🛒 Product #{product_id} x{quantity} added", extra={"chat_id": user_id})
    return True


async def _owned_line(user_id: int, line_id: int) -> Optional[CartLine]:
    line = await get_store().carts.get_line(line_id)
    if not line or line.user_id != user_id:
        return None
    return line


async def set_quantity(user_id: int, line_id: int, quantity: int) -> bool:
    """
    Sets a line's quantity. ``quantity`` <= 0 removes the line.

    Returns:
        False if the line is not the user's, the product is gone, or
        ``quantity`` exceeds the live stock
    """
    if quantity <= 0:
        return await remove_line(user_id, line_id)

    store = get_store()
    line = await _owned_line(user_id, line_id)
    if not line:
        return False

    async with product_locks.hold(line.product_id):
        product = await store.products.get(line.product_id)
        if not product or quantity > product.stock:
            return False
        return await store.carts.set_quantity(line_id, quantity)


async def change_quantity(user_id: int, line_id: int, delta: int) -> bool:
    """Backs the ➕ / ➖ cart buttons."""
    line = await _owned_line(user_id, line_id)
    if not line:
        return False
    return await set_quantity(user_id, line_id, line.quantity + delta)


async def remove_line(user_id: int, line_id: int) -> bool:
    line = await _owned_line(user_id, line_id)
    if not line:
        return False
    return await get_store().carts.delete(line_id)


async def clear_cart(user_id: int) -> int:
    """
    Returns:
        Number of lines removed
    """
    removed = await get_store().carts.delete_for_user(user_id)
    if removed:
        logger.info(f"🗑 Cart cleared ({removed} line(s))", extra={"chat_id": user_id})
    return removed


async def get_cart(user_id: int) -> Cart:
    """
    Loads the user's cart with live product data.

    Lines whose product was deleted are dropped, and lines above the current
    stock are clamped to it (or dropped when the product sold out).
    """
    store = get_store()
    cart = Cart(user_id=user_id)

    for line in await store.carts.list_lines(user_id):
        async with product_locks.hold(line.product_id):
            product = await store.products.get(line.product_id)
            if not product or product.stock == 0:
                await store.carts.delete(line.id)
                logger.info(f"Dropped stale cart line #{line.id}", extra={"chat_id": user_id})
                continue
            if line.quantity > product.stock:
                await store.carts.set_quantity(line.id, product.stock)
                line = line.model_copy(update={"quantity": product.stock})
        cart.entries.append(CartEntry(line=line, product=product))

    return cart


async def cart_total(user_id: int) -> Decimal:
    return (await get_cart(user_id)).total


async def is_cart_empty(user_id: int) -> bool:
    return (await get_cart(user_id)).is_empty
