from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from .errors import OrderStoreError, WorkerInterrupted
from .models import Order, OrderStatus
from .repositories import OrderStore
from .runtime import InFlightRegistry, PipelineStats, RunTokens
from .stages import FulfillmentStages
from .work_queue import WorkQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OrderWorker:
    """
    One execution unit of the pool.

    Pulls order ids off the queue and drives each order pending -> processing
    -> completed. Every transition is re-checked against the stored status and
    written with a conditional update, so duplicate ids and concurrent
    cancellations end up as no-ops. Failures are logged and the item is
    dropped at whatever status it last committed.
    """

    def __init__(
        self,
        worker_id: int,
        queue: WorkQueue,
        store: OrderStore,
        stages: FulfillmentStages,
        tokens: RunTokens,
        stats: PipelineStats,
        in_flight: InFlightRegistry,
        *,
        poll_timeout: float = 1.0,
        max_retries: int = 0,
        retry_delay: float = 0.5,
    ) -> None:
        self.worker_id = worker_id
        self.queue = queue
        self.store = store
        self.stages = stages
        self.tokens = tokens
        self.stats = stats
        self.in_flight = in_flight
        self.poll_timeout = poll_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def run(self) -> None:
        logger.info("Worker %s started", self.worker_id)
        try:
            while not self.tokens.stop.is_set():
                order_id = self.queue.take(self.poll_timeout, cancel=self.tokens.stop)
                if order_id is None:
                    continue
                self.stats.incr("dequeued")
                self.process(order_id)
        except WorkerInterrupted as exc:
            self.stats.incr("interrupted")
            logger.warning("Worker %s interrupted: %s", self.worker_id, exc)
        logger.info("Worker %s stopped", self.worker_id)

    def process(self, order_id: int) -> None:
        """Drive a single order; raises only ``WorkerInterrupted``."""
        if not self.in_flight.claim(order_id):
            self.stats.incr("skipped")
            logger.info("Worker %s skipping order %s: already in flight", self.worker_id, order_id)
            return
        try:
            self._drive(order_id)
        except OrderStoreError:
            self.stats.incr("failed")
            logger.exception("Worker %s store error processing order %s", self.worker_id, order_id)
        except WorkerInterrupted:
            raise
        except Exception:
            self.stats.incr("failed")
            logger.exception("Worker %s failed processing order %s, dropping", self.worker_id, order_id)
        finally:
            self.in_flight.release(order_id)

    def _drive(self, order_id: int) -> None:
        logger.info("Worker %s processing order %s", self.worker_id, order_id)
        order = self._call_store(self.store.find_by_id, order_id)
        if order is None:
            self.stats.incr("not_found")
            logger.error("Worker %s: order %s not found, dropping", self.worker_id, order_id)
            return
        if order.status != OrderStatus.PENDING:
            self._skip(order_id, "not pending")
            return

        self.stages.validate(order, self.tokens.cancel)

        if not order.process() or not self._persist(order, OrderStatus.PENDING):
            self._skip(order_id, "changed during validation")
            return
        self.stats.incr("started")
        logger.info("Worker %s moved order %s to %s", self.worker_id, order_id, order.status.value)

        self.stages.fulfill(order, self.tokens.cancel)

        order = self._call_store(self.store.find_by_id, order_id)
        if order is None:
            self.stats.incr("not_found")
            logger.error("Worker %s: order %s vanished during fulfillment", self.worker_id, order_id)
            return
        if order.status != OrderStatus.PROCESSING:
            self._skip(order_id, "changed during fulfillment")
            return
        if not order.complete() or not self._persist(order, OrderStatus.PROCESSING):
            self._skip(order_id, "changed during fulfillment")
            return
        self.stats.incr("completed")
        logger.info("Worker %s completed order %s", self.worker_id, order_id)

    def _persist(self, order: Order, expected: OrderStatus) -> bool:
        return self._call_store(self.store.update, order, expected_status=expected)

    def _skip(self, order_id: int, reason: str) -> None:
        self.stats.incr("skipped")
        logger.debug("Worker %s left order %s untouched: %s", self.worker_id, order_id, reason)

    def _call_store(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        attempt = 0
        while True:
            self._check_cancelled()
            try:
                return operation(*args, **kwargs)
            except OrderStoreError:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "Worker %s store call %s failed, retry %s/%s",
                    self.worker_id,
                    getattr(operation, "__name__", operation),
                    attempt,
                    self.max_retries,
                )
                if self.tokens.cancel.wait(self.retry_delay):
                    raise WorkerInterrupted(f"retry of {getattr(operation, '__name__', operation)} cancelled")

    def _check_cancelled(self) -> None:
        if self.tokens.cancel.is_set():
            raise WorkerInterrupted("pipeline cancelled in-flight work")
