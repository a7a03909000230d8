"""
storefront/db/memory.py

Purpose: In-process entity store

- Backs STORAGE_BACKEND=memory (local runs and tests)
- Same contracts as the MongoDB repositories
- Returns copies so callers never alias stored documents
"""

import itertools
from typing import Dict, List, Optional

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
from storefront.models.order import Order, OrderStatus
from storefront.models.shop import ShopSettings
from storefront.models.user import Role, User, utcnow


def _window(items: list, offset: int, limit: Optional[int]) -> list:
    if limit is None:
        return items[offset:]
    return items[offset:offset + limit]


class MemoryUserRepository(UserRepository):
    def __init__(self):
        self._users: Dict[int, User] = {}

    async def get(self, chat_id):
        user = self._users.get(chat_id)
        return user.model_copy(deep=True) if user else None

    async def insert(self, user):
        if user.chat_id not in self._users:
            self._users[user.chat_id] = user.model_copy(deep=True)
        return self._users[user.chat_id].model_copy(deep=True)

    async def save(self, user):
        self._users[user.chat_id] = user.model_copy(deep=True)
        return user

    async def list_by_role(self, role: Role):
        return [
            u.model_copy(deep=True)
            for u in sorted(self._users.values(), key=lambda u: u.chat_id)
            if u.role == role
        ]

    async def list_all(self, offset=0, limit=None):
        users = [self._users[k] for k in sorted(self._users)]
        return [u.model_copy(deep=True) for u in _window(users, offset, limit)]

    async def count(self):
        return len(self._users)


class MemoryCategoryRepository(CategoryRepository):
    def __init__(self):
        self._categories: Dict[int, Category] = {}
        self._ids = itertools.count(1)

    async def get(self, category_id):
        category = self._categories.get(category_id)
        return category.model_copy(deep=True) if category else None

    async def get_by_name(self, name):
        wanted = name.strip().casefold()
        for category in self._categories.values():
            if category.name.casefold() == wanted:
                return category.model_copy(deep=True)
        return None

    async def get_by_slug(self, slug):
        for category in self._categories.values():
            if category.slug == slug:
                return category.model_copy(deep=True)
        return None

    async def list_all(self):
        return [self._categories[k].model_copy(deep=True) for k in sorted(self._categories)]

    async def insert(self, category):
        stored = category.model_copy(deep=True, update={"id": next(self._ids)})
        self._categories[stored.id] = stored
        return stored.model_copy(deep=True)

    async def save(self, category):
        self._categories[category.id] = category.model_copy(deep=True)
        return category

    async def delete(self, category_id):
        return self._categories.pop(category_id, None) is not None


class MemoryProductRepository(ProductRepository):
    def __init__(self):
        self._products: Dict[int, Product] = {}
        self._ids = itertools.count(1)

    def _sorted(self) -> List[Product]:
        return [self._products[k] for k in sorted(self._products)]

    async def get(self, product_id):
        product = self._products.get(product_id)
        return product.model_copy(deep=True) if product else None

    async def list_all(self, offset=0, limit=None):
        return [p.model_copy(deep=True) for p in _window(self._sorted(), offset, limit)]

    async def count(self):
        return len(self._products)

    async def list_by_category(self, category_id, offset=0, limit=None):
        matching = [p for p in self._sorted() if p.category_id == category_id]
        return [p.model_copy(deep=True) for p in _window(matching, offset, limit)]

    async def count_by_category(self, category_id):
        return sum(1 for p in self._products.values() if p.category_id == category_id)

    async def insert(self, product):
        stored = product.model_copy(deep=True, update={"id": next(self._ids)})
        self._products[stored.id] = stored
        return stored.model_copy(deep=True)

    async def update(self, product_id, fields):
        product = self._products.get(product_id)
        if product is None:
            return None
        updated = product.model_copy(deep=True, update={**fields, "updated_at": utcnow()})
        self._products[product_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, product_id):
        return self._products.pop(product_id, None) is not None

    # No await between the check and the write, so these are atomic on the loop
    async def reserve_stock(self, product_id, quantity):
        product = self._products.get(product_id)
        if product is None or product.stock < quantity:
            return False
        product.stock -= quantity
        product.updated_at = utcnow()
        return True

    async def release_stock(self, product_id, quantity):
        product = self._products.get(product_id)
        if product is None:
            return False
        product.stock += quantity
        product.updated_at = utcnow()
        return True


class MemoryCartRepository(CartRepository):
    def __init__(self):
        self._lines: Dict[int, CartLine] = {}
        self._ids = itertools.count(1)

    async def get_line(self, line_id):
        line = self._lines.get(line_id)
        return line.model_copy() if line else None

    async def find_line(self, user_id, product_id):
        for line in self._lines.values():
            if line.user_id == user_id and line.product_id == product_id:
                return line.model_copy()
        return None

    async def list_lines(self, user_id):
        return [
            self._lines[k].model_copy()
            for k in sorted(self._lines)
            if self._lines[k].user_id == user_id
        ]

    async def insert(self, line):
        if await self.find_line(line.user_id, line.product_id) is not None:
            raise ValueError(f"Cart line for product {line.product_id} already exists")
        stored = line.model_copy(update={"id": next(self._ids)})
        self._lines[stored.id] = stored
        return stored.model_copy()

    async def set_quantity(self, line_id, quantity):
        line = self._lines.get(line_id)
        if line is None:
            return False
        self._lines[line_id] = line.model_copy(update={"quantity": quantity})
        return True

    async def delete(self, line_id):
        return self._lines.pop(line_id, None) is not None

    async def delete_for_user(self, user_id):
        doomed = [k for k, line in self._lines.items() if line.user_id == user_id]
        for k in doomed:
            del self._lines[k]
        return len(doomed)

    async def delete_for_product(self, product_id):
        doomed = [k for k, line in self._lines.items() if line.product_id == product_id]
        for k in doomed:
            del self._lines[k]
        return len(doomed)


class MemoryOrderRepository(OrderRepository):
    def __init__(self):
        self._orders: Dict[int, Order] = {}
        self._ids = itertools.count(1)

    def _newest_first(self, status: Optional[OrderStatus] = None, user_id: Optional[int] = None):
        return [
            self._orders[k]
            for k in sorted(self._orders, reverse=True)
            if (status is None or self._orders[k].status == status)
            and (user_id is None or self._orders[k].user_id == user_id)
        ]

    async def insert(self, order):
        stored = order.model_copy(deep=True, update={"id": next(self._ids)})
        self._orders[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get(self, order_id):
        order = self._orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def list_by_user(self, user_id, offset=0, limit=None):
        orders = self._newest_first(user_id=user_id)
        return [o.model_copy(deep=True) for o in _window(orders, offset, limit)]

    async def count_by_user(self, user_id):
        return len(self._newest_first(user_id=user_id))

    async def list_all(self, status=None, offset=0, limit=None):
        orders = self._newest_first(status=status)
        return [o.model_copy(deep=True) for o in _window(orders, offset, limit)]

    async def count(self, status=None):
        return len(self._newest_first(status=status))

    async def transition(self, order_id, current, target):
        order = self._orders.get(order_id)
        if order is None or order.status != current:
            return None
        order.status = target
        order.updated_at = utcnow()
        return order.model_copy(deep=True)


class MemoryShopSettingsRepository(ShopSettingsRepository):
    def __init__(self):
        self._settings: Optional[ShopSettings] = None

    async def get(self):
        return self._settings.model_copy() if self._settings else None

    async def update(self, fields):
        current = self._settings or ShopSettings()
        self._settings = current.model_copy(update={**fields, "updated_at": utcnow()})
        return self._settings.model_copy()


def build_memory_store() -> Store:
    return Store(
        users=MemoryUserRepository(),
        categories=MemoryCategoryRepository(),
        products=MemoryProductRepository(),
        carts=MemoryCartRepository(),
        orders=MemoryOrderRepository(),
        shop=MemoryShopSettingsRepository(),
    )
