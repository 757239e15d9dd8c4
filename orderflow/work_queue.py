from __future__ import annotations

import threading
import time
from collections import deque
from typing import Deque, List, Optional


class WorkQueue:
    """
    Bounded FIFO of order ids shared by producers (submit, rescan) and workers.

    Both ``put`` and ``take`` block for at most ``timeout`` seconds and give up
    early once the optional ``cancel`` event is set. ``wake_all`` pokes every
    blocked caller so it re-checks its cancel event.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._items: Deque[int] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    @property
    def capacity(self) -> int:
        return self._capacity

    def put(self, order_id: int, timeout: float, cancel: Optional[threading.Event] = None) -> bool:
        """Append ``order_id``; False if the queue stayed full for ``timeout`` seconds."""
        end_time = time.monotonic() + max(0.0, timeout)
        with self._lock:
            while len(self._items) >= self._capacity:
                if cancel is not None and cancel.is_set():
                    return False
                remaining = end_time - time.monotonic()
                if remaining <= 0:
                    return False
                self._not_full.wait(remaining)
            self._items.append(order_id)
            self._not_empty.notify()
            return True

    def take(self, timeout: float, cancel: Optional[threading.Event] = None) -> Optional[int]:
        """Pop the oldest id, or None on timeout/cancel."""
        end_time = time.monotonic() + max(0.0, timeout)
        with self._lock:
            while not self._items:
                if cancel is not None and cancel.is_set():
                    return None
                remaining = end_time - time.monotonic()
                if remaining <= 0:
                    return None
                self._not_empty.wait(remaining)
            order_id = self._items.popleft()
            self._not_full.notify()
            return order_id

    def wake_all(self) -> None:
        with self._lock:
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def snapshot(self) -> List[int]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
