"""
storefront/models/order.py

Purpose: Order model and lifecycle table

- NEW -> PROCESSING | CANCELLED
- PROCESSING -> COMPLETED | CANCELLED
- COMPLETED and CANCELLED are absorbing
- Line items snapshot name and unit price at creation time
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from storefront.models.user import utcnow


class OrderStatus(str, Enum):
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)

STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.NEW: "🆕 New",
    OrderStatus.PROCESSING: "⚙️ Processing",
    OrderStatus.COMPLETED: "✅ Completed",
    OrderStatus.CANCELLED: "❌ Cancelled",
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Checks the lifecycle table.

    Args:
        current: Stored order status
        target: Requested status

    Returns:
        True if the move is allowed
    """
    return target in ORDER_TRANSITIONS.get(current, frozenset())


class OrderItem(BaseModel):
    product_id: int
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    id: Optional[int] = None
    user_id: int
    items: List[OrderItem] = Field(..., min_length=1)
    address: str
    phone: str
    comment: Optional[str] = None
    status: OrderStatus = OrderStatus.NEW
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
