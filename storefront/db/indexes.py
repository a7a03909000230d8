"""
storefront/db/indexes.py

Purpose: Database index management

- Unique indexes backing entity invariants (category name/slug, cart line per user+product)
- Lookup indexes for catalog pages, carts, order lists and role queries
"""

from pymongo import ASCENDING, DESCENDING

from storefront.db.mongo import (
    CART_LINES,
    CATEGORIES,
    ORDERS,
    PRODUCTS,
    USERS,
    get_collection,
)
from storefront.core.logging import get_logger

logger = get_logger(__name__)

# Case-insensitive comparison for category names
CASE_INSENSITIVE = {"locale": "en", "strength": 2}


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_collection(USERS)
        categories = get_collection(CATEGORIES)
        products = get_collection(PRODUCTS)
        cart_lines = get_collection(CART_LINES)
        orders = get_collection(ORDERS)

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        # Admin notification fan-out and manager lists
        await users.create_index("role", name="role_idx")
        logger.debug("Created index on users.role")

        # ==============================================
        # CATEGORIES COLLECTION INDEXES
        # ==============================================

        await categories.create_index(
            "name", unique=True, collation=CASE_INSENSITIVE, name="category_name_unique"
        )
        await categories.create_index("slug", unique=True, name="category_slug_unique")
        logger.debug("Created unique indexes on categories.name + slug")

        # ==============================================
        # PRODUCTS COLLECTION INDEXES
        # ==============================================

        await products.create_index(
            [("category_id", ASCENDING), ("_id", ASCENDING)],
            name="category_products_idx"
        )
        logger.debug("Created compound index on products.category_id + _id")

        # ==============================================
        # CART LINES COLLECTION INDEXES
        # ==============================================

        # At most one line per (user, product)
        await cart_lines.create_index(
            [("user_id", ASCENDING), ("product_id", ASCENDING)],
            unique=True,
            name="cart_line_unique"
        )
        await cart_lines.create_index("product_id", name="cart_product_idx")
        logger.debug("Created indexes on cart_lines")

        # ==============================================
        # ORDERS COLLECTION INDEXES
        # ==============================================

        await orders.create_index(
            [("user_id", ASCENDING), ("_id", DESCENDING)],
            name="user_orders_idx"
        )
        await orders.create_index(
            [("status", ASCENDING), ("_id", DESCENDING)],
            name="status_orders_idx"
        )
        logger.debug("Created indexes on orders.user_id + status")

        logger.info("✅ All database indexes created successfully")

        index_counts = {}
        for collection in (users, categories, products, cart_lines, orders):
            index_counts[collection.name] = len(await collection.index_information())

        logger.info(
            "Index summary: "
            + ", ".join(f"{name}={count}" for name, count in index_counts.items())
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise
