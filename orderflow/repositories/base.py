from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import Order, OrderStatus


class OrderStore(ABC):
    """
    Durable record of orders; can be backed by a SQL database or kept in memory.

    Implementations raise ``OrderStoreError`` for any read or write failure so
    callers can log and carry on.
    """

    @abstractmethod
    def create(self, order: Order) -> Order:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, order_id: int) -> Optional[Order]:
        raise NotImplementedError

    @abstractmethod
    def find_all(self, limit: Optional[int] = None) -> List[Order]:
        raise NotImplementedError

    @abstractmethod
    def find_all_with_status(self, status: OrderStatus) -> List[Order]:
        raise NotImplementedError

    @abstractmethod
    def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        """Persist ``order``.

        With ``expected_status`` the write only lands if the stored status
        still equals it. Returns False when nothing was written.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, order_id: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError
