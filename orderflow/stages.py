from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

from .errors import WorkerInterrupted
from .models import Order

logger = logging.getLogger(__name__)


class FulfillmentStages(Protocol):
    """The two external steps a worker runs around the status transitions."""

    def validate(self, order: Order, cancel: threading.Event) -> None:
        ...

    def fulfill(self, order: Order, cancel: threading.Event) -> None:
        ...


@dataclass
class SimulatedStages:
    """Stands in for the payment/inventory check and the fulfillment call."""

    validation_delay: float = 2.0
    fulfillment_delay: float = 3.0

    def validate(self, order: Order, cancel: threading.Event) -> None:
        self._pause("validation", order, self.validation_delay, cancel)

    def fulfill(self, order: Order, cancel: threading.Event) -> None:
        self._pause("fulfillment", order, self.fulfillment_delay, cancel)

    @staticmethod
    def _pause(stage: str, order: Order, delay: float, cancel: threading.Event) -> None:
        logger.debug("Order %s entering %s stage (%.1fs)", order.id, stage, delay)
        if cancel.wait(delay):
            raise WorkerInterrupted(f"{stage} of order {order.id} cancelled")
