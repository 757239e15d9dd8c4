from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .errors import InvalidTransitionError, OrderNotFoundError
from .models import Order, OrderItem, OrderStatus
from .pipeline import OrderPipeline
from .repositories import OrderStore

logger = logging.getLogger(__name__)


class OrderService:
    """Order creation and cancellation on top of the store and the pipeline."""

    def __init__(self, store: OrderStore, pipeline: Optional[OrderPipeline] = None) -> None:
        self.store = store
        self.pipeline = pipeline

    def create_order(
        self,
        *,
        user_id: int,
        shipping_address: str,
        items: Iterable[OrderItem],
    ) -> Tuple[Order, bool]:
        """Store a pending order, then hand it to the pipeline.

        Returns the stored order and whether it made it onto the queue. An
        order that was not queued stays pending and is picked up by the next
        rescan.
        """
        order = Order(user_id=user_id, shipping_address=shipping_address, items=list(items))
        if not order.validate():
            raise ValueError("Order needs a user, a shipping address and at least one valid item")

        stored = self.store.create(order)
        logger.info("Created order %s for user %s (total=%s)", stored.id, user_id, stored.total_amount)

        queued = False
        if self.pipeline is not None:
            queued = self.pipeline.submit(stored.id)
        if not queued:
            logger.warning("Order %s stored but not queued; left for rediscovery", stored.id)
        return stored, queued

    def get_order(self, order_id: int) -> Order:
        order = self.store.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(self, status: Optional[OrderStatus] = None, limit: int = 50) -> List[Order]:
        if status is not None:
            return self.store.find_all_with_status(status)[:limit]
        return self.store.find_all(limit=limit)

    def cancel_order(self, order_id: int) -> Order:
        # A worker may move the order between our read and our write; the
        # conditional update catches that and we re-read. Status only moves
        # forward, so this settles within a couple of rounds.
        while True:
            order = self.get_order(order_id)
            previous = order.status
            if previous == OrderStatus.CANCELLED:
                return order
            if not order.cancel():
                raise InvalidTransitionError(f"Order {order_id} is {previous.value} and cannot be cancelled")
            if self.store.update(order, expected_status=previous):
                logger.info("Cancelled order %s (was %s)", order_id, previous.value)
                return order
            logger.debug("Order %s changed while cancelling, retrying", order_id)
