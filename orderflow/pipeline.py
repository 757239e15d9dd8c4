from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from .config import Settings, get_settings
from .repositories import OrderStore
from .runtime import InFlightRegistry, PipelineStats, RunTokens
from .scheduler import RediscoveryScheduler
from .stages import FulfillmentStages, SimulatedStages
from .work_queue import WorkQueue
from .workers import OrderWorker

logger = logging.getLogger(__name__)

# How long stop() keeps waiting once in-flight work has been cancelled.
CANCEL_JOIN_SECONDS = 5.0


class OrderPipeline:
    """
    Owns the work queue, the worker threads and the rediscovery thread.

    Build one per process at startup and hand it to whoever submits orders.
    ``start`` and ``stop`` may be called from any thread; ``submit``,
    ``queue_depth`` and ``is_running`` are safe to call at any time.
    """

    def __init__(
        self,
        store: OrderStore,
        settings: Optional[Settings] = None,
        stages: Optional[FulfillmentStages] = None,
        queue: Optional[WorkQueue] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.stages = stages or SimulatedStages(
            validation_delay=self.settings.VALIDATION_DELAY_SECONDS,
            fulfillment_delay=self.settings.FULFILLMENT_DELAY_SECONDS,
        )
        self.queue = queue or WorkQueue(capacity=self.settings.QUEUE_CAPACITY)
        self.stats = PipelineStats()
        self.in_flight = InFlightRegistry()

        self._lock = threading.Lock()
        self._running = False
        self._tokens: Optional[RunTokens] = None
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        with self._lock:
            if self._running:
                logger.warning("Order pipeline is already running")
                return

            tokens = RunTokens()
            threads = []
            for worker_id in range(self.settings.WORKER_COUNT):
                worker = OrderWorker(
                    worker_id,
                    self.queue,
                    self.store,
                    self.stages,
                    tokens,
                    self.stats,
                    self.in_flight,
                    poll_timeout=self.settings.POLL_TIMEOUT_SECONDS,
                    max_retries=self.settings.MAX_RETRIES,
                    retry_delay=self.settings.RETRY_DELAY_SECONDS,
                )
                threads.append(
                    threading.Thread(target=worker.run, name=f"order-worker-{worker_id}", daemon=True)
                )
            scheduler = RediscoveryScheduler(
                self.store,
                self.submit,
                tokens,
                self.stats,
                interval=self.settings.RESCAN_INTERVAL_SECONDS,
            )
            threads.append(threading.Thread(target=scheduler.run, name="order-rescan", daemon=True))

            self._tokens = tokens
            self._threads = threads
            self._running = True
            logger.info("Starting order pipeline with %s workers", self.settings.WORKER_COUNT)
            for thread in threads:
                thread.start()

    def stop(self) -> None:
        """Stop pulling work, let in-flight orders finish within the grace period, then cancel."""
        with self._lock:
            if not self._running:
                logger.debug("Order pipeline is not running")
                return
            self._running = False
            tokens, threads = self._tokens, self._threads
            self._tokens, self._threads = None, []

            logger.info("Stopping order pipeline...")
            tokens.stop.set()
            self.queue.wake_all()

            grace = self.settings.SHUTDOWN_GRACE_SECONDS
            end_time = time.monotonic() + grace
            for thread in threads:
                thread.join(max(0.0, end_time - time.monotonic()))

            busy = [t for t in threads if t.is_alive()]
            if busy:
                logger.warning(
                    "%s pipeline threads still busy after %.1fs, cancelling in-flight work",
                    len(busy),
                    grace,
                )
                tokens.cancel.set()
                for thread in busy:
                    thread.join(CANCEL_JOIN_SECONDS)
                stuck = [t.name for t in busy if t.is_alive()]
                if stuck:
                    logger.error("Pipeline threads did not exit: %s", ", ".join(stuck))
            else:
                tokens.cancel.set()
            logger.info("Order pipeline stopped (%s orders left in queue)", len(self.queue))

    def submit(self, order_id: int, cancel: Optional[threading.Event] = None) -> bool:
        """Queue ``order_id``; False when the queue stays full past the submit timeout."""
        timeout = self.settings.SUBMIT_TIMEOUT_SECONDS
        if self.queue.put(order_id, timeout=timeout, cancel=cancel):
            self.stats.incr("submitted")
            logger.info("Order %s queued for processing", order_id)
            return True
        self.stats.incr("rejected")
        logger.warning("Order %s not queued: queue full after %.1fs", order_id, timeout)
        return False

    def queue_depth(self) -> int:
        return len(self.queue)

    def is_running(self) -> bool:
        return self._running

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running(),
            "queue_depth": self.queue_depth(),
            "queue_capacity": self.queue.capacity,
            "workers": self.settings.WORKER_COUNT,
            "in_flight": self.in_flight.snapshot(),
            "counters": self.stats.snapshot(),
        }

    def __enter__(self) -> "OrderPipeline":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
