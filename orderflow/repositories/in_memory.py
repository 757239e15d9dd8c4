from __future__ import annotations

import copy
import itertools
import threading
from typing import Dict, List, Optional

from .base import OrderStore
from ..models import Order, OrderStatus, utcnow


class InMemoryOrderStore(OrderStore):
    """Thread-safe dict-backed store; hands out copies so callers never share rows."""

    def __init__(self) -> None:
        self._orders: Dict[int, Order] = {}
        self._ids = itertools.count(1)
        self._item_ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, order: Order) -> Order:
        stored = copy.deepcopy(order)
        with self._lock:
            stored.id = next(self._ids)
            for item in stored.items:
                item.id = next(self._item_ids)
            self._orders[stored.id] = stored
        return copy.deepcopy(stored)

    def find_by_id(self, order_id: int) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order else None

    def find_all(self, limit: Optional[int] = None) -> List[Order]:
        with self._lock:
            orders = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
            if limit is not None:
                orders = orders[:limit]
            return [copy.deepcopy(o) for o in orders]

    def find_all_with_status(self, status: OrderStatus) -> List[Order]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._orders.values() if o.status == status]

    def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                return False
            if expected_status is not None and current.status != expected_status:
                return False
            stored = copy.deepcopy(order)
            stored.updated_at = utcnow()
            self._orders[order.id] = stored
            return True

    def delete(self, order_id: int) -> bool:
        with self._lock:
            return self._orders.pop(order_id, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._orders)
