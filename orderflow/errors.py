from __future__ import annotations


class OrderflowError(Exception):
    """Base class for errors raised by the order pipeline and its stores."""


class OrderStoreError(OrderflowError):
    """Raised when the order store cannot read or persist an order."""


class OrderNotFoundError(OrderflowError):
    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidTransitionError(OrderflowError):
    """Raised when a status change would break the order lifecycle."""


class WorkerInterrupted(OrderflowError):
    """Raised inside a worker when the pipeline cancels in-flight work."""
