"""Order fulfillment pipeline: bounded work queue, worker pool and rescan loop."""

from .models import Order, OrderItem, OrderStatus
from .pipeline import OrderPipeline

__all__ = ["Order", "OrderItem", "OrderStatus", "OrderPipeline"]

__version__ = "0.1.0"
