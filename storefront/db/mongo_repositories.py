"""
storefront/db/mongo_repositories.py

Purpose: MongoDB-backed repositories

- Integer ids from a counters collection ($inc with upsert)
- Money stored as Decimal128
- Stock reservation as a single conditional update (stock >= qty)
- Order status change as a compare-and-set on the stored status
- Shop settings as one upserted document
"""

import re
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from bson.decimal128 import Decimal128
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from storefront.core.logging import get_logger
from storefront.db import mongo
from storefront.db.repositories import (
    CartRepository,
    CategoryRepository,
    OrderRepository,
    ProductRepository,
    ShopSettingsRepository,
    Store,
    UserRepository,
)
from storefront.models.cart import CartLine
from storefront.models.catalog import Category, Product
from storefront.models.order import Order
from storefront.models.shop import ShopSettings
from storefront.models.user import User, utcnow

logger = get_logger(__name__)

SHOP_SETTINGS_ID = "shop"


def _encode(value: Any) -> Any:
    """Converts model_dump() output into BSON-friendly values."""
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def to_document(model, key: str = "id") -> Dict[str, Any]:
    doc = _encode(model.model_dump())
    doc["_id"] = doc.pop(key)
    return doc


def from_document(model_cls, doc: Optional[Dict[str, Any]], key: str = "id"):
    if doc is None:
        return None
    doc = _decode(dict(doc))
    doc[key] = doc.pop("_id")
    return model_cls.model_validate(doc)


async def next_id(db: AsyncIOMotorDatabase, sequence: str) -> int:
    """
    Allocates the next integer id for ``sequence``.

    Args:
        db: Database handle
        sequence: Counter name (usually the collection name)

    Returns:
        Monotonically increasing id starting at 1
    """
    counter = await db[mongo.COUNTERS].find_one_and_update(
        {"_id": sequence},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


def _page(cursor, offset: int, limit: Optional[int]):
    cursor = cursor.skip(offset)
    if limit is not None:
        cursor = cursor.limit(limit)
    return cursor


class MongoUserRepository(UserRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[mongo.USERS]

    async def get(self, chat_id):
        doc = await self.collection.find_one({"_id": chat_id})
        return from_document(User, doc, key="chat_id")

    async def insert(self, user):
        doc = to_document(user, key="chat_id")
        # $setOnInsert makes concurrent first contacts converge on one document
        await self.collection.update_one(
            {"_id": doc.pop("_id")},
            {"$setOnInsert": doc},
            upsert=True,
        )
        return await self.get(user.chat_id)

    async def save(self, user):
        doc = to_document(user, key="chat_id")
        await self.collection.replace_one({"_id": doc["_id"]}, doc, upsert=True)
        return user

    async def list_by_role(self, role):
        cursor = self.collection.find({"role": role.value}).sort("_id", ASCENDING)
        return [from_document(User, doc, key="chat_id") async for doc in cursor]

    async def list_all(self, offset=0, limit=None):
        cursor = _page(self.collection.find().sort("_id", ASCENDING), offset, limit)
        return [from_document(User, doc, key="chat_id") async for doc in cursor]

    async def count(self):
        return await self.collection.count_documents({})


class MongoCategoryRepository(CategoryRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[mongo.CATEGORIES]

    async def get(self, category_id):
        return from_document(Category, await self.collection.find_one({"_id": category_id}))

    async def get_by_name(self, name):
        pattern = f"^{re.escape(name.strip())}$"
        doc = await self.collection.find_one({"name": {"$regex": pattern, "$options": "i"}})
        return from_document(Category, doc)

    async def get_by_slug(self, slug):
        return from_document(Category, await self.collection.find_one({"slug": slug}))

    async def list_all(self):
        cursor = self.collection.find().sort("_id", ASCENDING)
        return [from_document(Category, doc) async for doc in cursor]

    async def insert(self, category):
        category = category.model_copy(update={"id": await next_id(self.db, mongo.CATEGORIES)})
        await self.collection.insert_one(to_document(category))
        return category

    async def save(self, category):
        doc = to_document(category)
        await self.collection.replace_one({"_id": doc["_id"]}, doc)
        return category

    async def delete(self, category_id):
        result = await self.collection.delete_one({"_id": category_id})
        return result.deleted_count > 0


class MongoProductRepository(ProductRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[mongo.PRODUCTS]

    async def get(self, product_id):
        return from_document(Product, await self.collection.find_one({"_id": product_id}))

    async def list_all(self, offset=0, limit=None):
        cursor = _page(self.collection.find().sort("_id", ASCENDING), offset, limit)
        return [from_document(Product, doc) async for doc in cursor]

    async def count(self):
        return await self.collection.count_documents({})

    async def list_by_category(self, category_id, offset=0, limit=None):
        cursor = self.collection.find({"category_id": category_id}).sort("_id", ASCENDING)
        return [from_document(Product, doc) async for doc in _page(cursor, offset, limit)]

    async def count_by_category(self, category_id):
        return await self.collection.count_documents({"category_id": category_id})

    async def insert(self, product):
        product = product.model_copy(update={"id": await next_id(self.db, mongo.PRODUCTS)})
        await self.collection.insert_one(to_document(product))
        return product

    async def update(self, product_id, fields):
        doc = await self.collection.find_one_and_update(
            {"_id": product_id},
            {"$set": {**_encode(fields), "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return from_document(Product, doc)

    async def delete(self, product_id):
        result = await self.collection.delete_one({"_id": product_id})
        return result.deleted_count > 0

    async def reserve_stock(self, product_id, quantity):
        result = await self.collection.update_one(
            {"_id": product_id, "stock": {"$gte": quantity}},
            {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
        )
        return result.modified_count == 1

    async def release_stock(self, product_id, quantity):
        result = await self.collection.update_one(
            {"_id": product_id},
            {"$inc": {"stock": quantity}, "$set": {"updated_at": utcnow()}},
        )
        return result.modified_count == 1


class MongoCartRepository(CartRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[mongo.CART_LINES]

    async def get_line(self, line_id):
        return from_document(CartLine, await self.collection.find_one({"_id": line_id}))

    async def find_line(self, user_id, product_id):
        doc = await self.collection.find_one({"user_id": user_id, "product_id": product_id})
        return from_document(CartLine, doc)

    async def list_lines(self, user_id):
        cursor = self.collection.find({"user_id": user_id}).sort("_id", ASCENDING)
        return [from_document(CartLine, doc) async for doc in cursor]

    async def insert(self, line):
        line = line.model_copy(update={"id": await next_id(self.db, mongo.CART_LINES)})
        await self.collection.insert_one(to_document(line))
        return line

    async def set_quantity(self, line_id, quantity):
        result = await self.collection.update_one(
            {"_id": line_id}, {"$set": {"quantity": quantity}}
        )
        return result.matched_count == 1

    async def delete(self, line_id):
        result = await self.collection.delete_one({"_id": line_id})
        return result.deleted_count > 0

    async def delete_for_user(self, user_id):
        result = await self.collection.delete_many({"user_id": user_id})
        return result.deleted_count

    async def delete_for_product(self, product_id):
        result = await self.collection.delete_many({"product_id": product_id})
        return result.deleted_count


class MongoOrderRepository(OrderRepository):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[mongo.ORDERS]

    async def insert(self, order):
        order = order.model_copy(update={"id": await next_id(self.db, mongo.ORDERS)})
        await self.collection.insert_one(to_document(order))
        return order

    async def get(self, order_id):
        return from_document(Order, await self.collection.find_one({"_id": order_id}))

    async def list_by_user(self, user_id, offset=0, limit=None):
        cursor = self.collection.find({"user_id": user_id}).sort("_id", DESCENDING)
        return [from_document(Order, doc) async for doc in _page(cursor, offset, limit)]

    async def count_by_user(self, user_id):
        return await self.collection.count_documents({"user_id": user_id})

    async def list_all(self, status=None, offset=0, limit=None):
        query = {"status": status.value} if status else {}
        cursor = self.collection.find(query).sort("_id", DESCENDING)
        return [from_document(Order, doc) async for doc in _page(cursor, offset, limit)]

    async def count(self, status=None):
        query = {"status": status.value} if status else {}
        return await self.collection.count_documents(query)

    async def transition(self, order_id, current, target):
        doc = await self.collection.find_one_and_update(
            {"_id": order_id, "status": current.value},
            {"$set": {"status": target.value, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return from_document(Order, doc)


class MongoShopSettingsRepository(ShopSettingsRepository):
    """One document keyed SHOP_SETTINGS_ID; missing fields fall back to model defaults."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[mongo.SHOP_SETTINGS]

    async def get(self):
        doc = await self.collection.find_one({"_id": SHOP_SETTINGS_ID})
        if doc is None:
            return None
        doc = _decode(dict(doc))
        doc.pop("_id")
        return ShopSettings.model_validate(doc)

    async def update(self, fields):
        defaults = _encode(ShopSettings().model_dump(exclude={"updated_at", *fields}))
        doc = await self.collection.find_one_and_update(
            {"_id": SHOP_SETTINGS_ID},
            {"$set": {**_encode(fields), "updated_at": utcnow()}, "$setOnInsert": defaults},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        doc.pop("_id")
        return ShopSettings.model_validate(_decode(doc))


def build_mongo_store(db: AsyncIOMotorDatabase) -> Store:
    return Store(
        users=MongoUserRepository(db),
        categories=MongoCategoryRepository(db),
        products=MongoProductRepository(db),
        carts=MongoCartRepository(db),
        orders=MongoOrderRepository(db),
        shop=MongoShopSettingsRepository(db),
    )
