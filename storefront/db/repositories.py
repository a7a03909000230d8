"""
storefront/db/repositories.py

Purpose: Entity store contracts

- One repository per entity (users, categories, products, cart lines, orders)
- Single shop settings document
- Conditional stock updates and order status compare-and-set
- Store bundle selected at startup (MongoDB or in-process memory)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storefront.models.cart import CartLine
from storefront.models.catalog import Category, Product
from storefront.models.order import Order, OrderStatus
from storefront.models.shop import ShopSettings
from storefront.models.user import Role, User


class UserRepository(ABC):
    @abstractmethod
    async def get(self, chat_id: int) -> Optional[User]: ...

    @abstractmethod
    async def insert(self, user: User) -> User:
        """Stores ``user`` unless the chat id exists; returns the stored user."""

    @abstractmethod
    async def save(self, user: User) -> User: ...

    @abstractmethod
    async def list_by_role(self, role: Role) -> List[User]: ...

    @abstractmethod
    async def list_all(self, offset: int = 0, limit: Optional[int] = None) -> List[User]:
        """Ordered by chat id."""

    @abstractmethod
    async def count(self) -> int: ...


class CategoryRepository(ABC):
    @abstractmethod
    async def get(self, category_id: int) -> Optional[Category]: ...

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive name lookup."""

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Optional[Category]: ...

    @abstractmethod
    async def list_all(self) -> List[Category]: ...

    @abstractmethod
    async def insert(self, category: Category) -> Category: ...

    @abstractmethod
    async def save(self, category: Category) -> Category: ...

    @abstractmethod
    async def delete(self, category_id: int) -> bool: ...


class ProductRepository(ABC):
    @abstractmethod
    async def get(self, product_id: int) -> Optional[Product]: ...

    @abstractmethod
    async def list_all(self, offset: int = 0, limit: Optional[int] = None) -> List[Product]: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def list_by_category(
        self, category_id: int, offset: int = 0, limit: Optional[int] = None
    ) -> List[Product]: ...

    @abstractmethod
    async def count_by_category(self, category_id: int) -> int: ...

    @abstractmethod
    async def insert(self, product: Product) -> Product: ...

    @abstractmethod
    async def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        """
        Sets only ``fields`` on the stored product; other fields (stock
        in particular) keep whatever concurrent writers left there.

        Returns:
            The updated product, or None if it no longer exists
        """

    @abstractmethod
    async def delete(self, product_id: int) -> bool: ...

    @abstractmethod
    async def reserve_stock(self, product_id: int, quantity: int) -> bool:
        """
        Atomically decrements stock by ``quantity`` only if enough is left.

        Returns:
            False if the product is gone or has less than ``quantity`` in stock
        """

    @abstractmethod
    async def release_stock(self, product_id: int, quantity: int) -> bool:
        """Returns reserved stock; False if the product no longer exists."""


class CartRepository(ABC):
    @abstractmethod
    async def get_line(self, line_id: int) -> Optional[CartLine]: ...

    @abstractmethod
    async def find_line(self, user_id: int, product_id: int) -> Optional[CartLine]: ...

    @abstractmethod
    async def list_lines(self, user_id: int) -> List[CartLine]: ...

    @abstractmethod
    async def insert(self, line: CartLine) -> CartLine: ...

    @abstractmethod
    async def set_quantity(self, line_id: int, quantity: int) -> bool: ...

    @abstractmethod
    async def delete(self, line_id: int) -> bool: ...

    @abstractmethod
    async def delete_for_user(self, user_id: int) -> int: ...

    @abstractmethod
    async def delete_for_product(self, product_id: int) -> int: ...


class OrderRepository(ABC):
    @abstractmethod
    async def insert(self, order: Order) -> Order: ...

    @abstractmethod
    async def get(self, order_id: int) -> Optional[Order]: ...

    @abstractmethod
    async def list_by_user(
        self, user_id: int, offset: int = 0, limit: Optional[int] = None
    ) -> List[Order]:
        """Newest first."""

    @abstractmethod
    async def count_by_user(self, user_id: int) -> int: ...

    @abstractmethod
    async def list_all(
        self, status: Optional[OrderStatus] = None, offset: int = 0, limit: Optional[int] = None
    ) -> List[Order]:
        """Newest first, optionally filtered by status."""

    @abstractmethod
    async def count(self, status: Optional[OrderStatus] = None) -> int: ...

    @abstractmethod
    async def transition(
        self, order_id: int, current: OrderStatus, target: OrderStatus
    ) -> Optional[Order]:
        """
        Compare-and-set on the stored status.

        Returns:
            The updated order, or None if the stored status was not ``current``
        """


class ShopSettingsRepository(ABC):
    @abstractmethod
    async def get(self) -> Optional[ShopSettings]:
        """The stored settings, or None until they are first edited."""

    @abstractmethod
    async def update(self, fields: Dict[str, Any]) -> ShopSettings:
        """Sets ``fields`` (creating the document with defaults if needed)."""


@dataclass
class Store:
    users: UserRepository
    categories: CategoryRepository
    products: ProductRepository
    carts: CartRepository
    orders: OrderRepository
    shop: ShopSettingsRepository


_store: Optional[Store] = None


def set_store(store: Optional[Store]) -> None:
    global _store
    _store = store


def get_store() -> Store:
    """
    Returns the active entity store.

    Raises:
        RuntimeError: If no store was configured at startup
    """
    if _store is None:
        raise RuntimeError("Store not initialized. Call init_store() during startup.")
    return _store
