from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class OrderItem:
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    def validate(self) -> bool:
        return (
            self.product_id is not None
            and bool(self.product_name and self.product_name.strip())
            and self.quantity > 0
            and Decimal(self.unit_price) >= 0
        )


@dataclass
class Order:
    """An order as persisted by the order store.

    Status changes go through ``process``, ``complete`` and ``cancel``; each
    returns whether the status moved and stamps ``updated_at`` when it did.
    """

    user_id: int
    shipping_address: str
    items: List[OrderItem] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def total_amount(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    def process(self) -> bool:
        return self._move_to(OrderStatus.PROCESSING)

    def complete(self) -> bool:
        return self._move_to(OrderStatus.COMPLETED)

    def cancel(self) -> bool:
        return self._move_to(OrderStatus.CANCELLED)

    def validate(self) -> bool:
        return (
            self.user_id is not None
            and bool(self.shipping_address and self.shipping_address.strip())
            and bool(self.items)
            and all(item.validate() for item in self.items)
        )

    def _move_to(self, target: OrderStatus) -> bool:
        if not self.status.can_transition_to(target):
            return False
        self.status = target
        self.updated_at = utcnow()
        return True
