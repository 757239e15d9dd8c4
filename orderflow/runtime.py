from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class RunTokens:
    """Signals shared by every thread of one pipeline run.

    ``stop`` ends the loops (no new work is pulled); ``cancel`` additionally
    aborts whatever a worker is in the middle of.
    """

    stop: threading.Event = field(default_factory=threading.Event)
    cancel: threading.Event = field(default_factory=threading.Event)


class PipelineStats:
    COUNTERS = (
        "submitted",
        "rejected",
        "dequeued",
        "started",
        "completed",
        "skipped",
        "not_found",
        "failed",
        "interrupted",
        "rescans",
        "resubmitted",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = dict.fromkeys(self.COUNTERS, 0)

    def incr(self, name: str, amount: int = 1) -> None:
        if name not in self._counts:
            raise KeyError(f"Unknown counter: {name}")
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


class InFlightRegistry:
    """Order ids currently owned by a worker; one owner per id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: Set[int] = set()

    def claim(self, order_id: int) -> bool:
        with self._lock:
            if order_id in self._ids:
                return False
            self._ids.add(order_id)
            return True

    def release(self, order_id: int) -> None:
        with self._lock:
            self._ids.discard(order_id)

    def snapshot(self) -> List[int]:
        with self._lock:
            return sorted(self._ids)

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._ids
