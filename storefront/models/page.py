"""
storefront/models/page.py

Purpose: Paged listing container

- Zero-based page index with the total item count
- Navigation flags used by the pager keyboards
"""

from dataclasses import dataclass, field
from typing import Generic, List, TypeVar

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of a listing. ``page`` is zero-based."""
    items: List[T] = field(default_factory=list)
    page: int = 0
    size: int = 1
    total: int = 0

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.size))

    @property
    def has_next(self) -> bool:
        return (self.page + 1) * self.size < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 0
