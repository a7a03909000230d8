"""
storefront/models/catalog.py

Purpose: Product and category models

- Product with exact decimal price and non-negative stock
- Category with a derived URL-safe slug
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from storefront.models.user import utcnow

DEFAULT_CATEGORY_DESCRIPTION = "No description"
SLUG_MAX_LENGTH = 40
SLUG_FALLBACK = "category"

_NON_SLUG_CHARS = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

CENT = Decimal("0.01")


def slugify(name: str) -> str:
    """
    Derives a category slug from its name.

    Non-alphanumeric characters are dropped and whitespace runs become a
    single dash. Names with no ASCII letters or digits fall back to
    "category"; the caller makes the result unique.
    """
    slug = _NON_SLUG_CHARS.sub("", name.strip().lower())
    slug = _WHITESPACE.sub("-", slug.strip())
    slug = slug[:SLUG_MAX_LENGTH].strip("-")
    return slug or SLUG_FALLBACK


class Category(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: str = DEFAULT_CATEGORY_DESCRIPTION
    created_at: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)
    image: Optional[str] = None  # Telegram file id or http(s) URL
    category_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("price")
    @classmethod
    def two_decimal_places(cls, v: Decimal) -> Decimal:
        if v != v.quantize(CENT):
            raise ValueError("price must have at most two decimal places")
        return v.quantize(CENT)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0
