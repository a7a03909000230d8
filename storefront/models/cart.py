"""
storefront/models/cart.py

Purpose: Cart line model and read-side cart view

- One line per (user, product)
- Quantity is always between 1 and the product's stock
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.models.catalog import Product


class CartLine(BaseModel):
    id: Optional[int] = None
    user_id: int
    product_id: int
    quantity: int = Field(..., ge=1)


@dataclass
class CartEntry:
    line: CartLine
    product: Product

    @property
    def subtotal(self) -> Decimal:
        return self.product.price * self.line.quantity


@dataclass
class Cart:
    user_id: int
    entries: List[CartEntry] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((entry.subtotal for entry in self.entries), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.entries
