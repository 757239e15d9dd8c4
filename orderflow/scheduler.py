from __future__ import annotations

import logging
from typing import Callable

from .errors import OrderStoreError
from .models import OrderStatus
from .repositories import OrderStore
from .runtime import PipelineStats, RunTokens

logger = logging.getLogger(__name__)

SubmitFn = Callable[..., bool]


class RediscoveryScheduler:
    """
    Periodically re-queues orders still sitting in ``pending``.

    Safety net for submits that timed out and for orders that were stored but
    never enqueued. Re-queuing an order that is already in flight is harmless:
    the worker transitions are guarded.
    """

    def __init__(
        self,
        store: OrderStore,
        submit: SubmitFn,
        tokens: RunTokens,
        stats: PipelineStats,
        interval: float = 10.0,
    ) -> None:
        self.store = store
        self.submit = submit
        self.tokens = tokens
        self.stats = stats
        self.interval = interval

    def run(self) -> None:
        logger.info("Rediscovery scheduler started (every %.1fs)", self.interval)
        while not self.tokens.stop.wait(self.interval):
            self.scan_once()
        logger.info("Rediscovery scheduler stopped")

    def scan_once(self) -> int:
        """Re-submit every pending order; returns how many were queued."""
        cancel = self.tokens.stop
        self.stats.incr("rescans")
        try:
            pending = self.store.find_all_with_status(OrderStatus.PENDING)
        except OrderStoreError:
            logger.exception("Scheduler failed to query pending orders")
            return 0
        logger.info("Scheduler found %s pending orders", len(pending))

        queued = 0
        for order in pending:
            if cancel.is_set():
                break
            if self.submit(order.id, cancel=cancel):
                queued += 1
        if queued:
            self.stats.incr("resubmitted", queued)
        return queued
