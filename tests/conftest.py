from __future__ import annotations

import threading
import time
from decimal import Decimal
from typing import Callable, List, NamedTuple, Optional

import pytest

from orderflow.config import Settings
from orderflow.database import create_db_engine, create_session_factory, init_db
from orderflow.errors import OrderStoreError
from orderflow.models import Order, OrderItem, OrderStatus
from orderflow.repositories import InMemoryOrderStore, SqlOrderStore


class UpdateCall(NamedTuple):
    order_id: int
    status: OrderStatus
    expected: Optional[OrderStatus]
    applied: bool


class RecordingStore(InMemoryOrderStore):
    """In-memory store that records every update and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.updates: List[UpdateCall] = []
        self.fail_updates = 0
        self.fail_queries = 0
        self._record_lock = threading.Lock()

    def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        with self._record_lock:
            if self.fail_updates:
                self.fail_updates -= 1
                raise OrderStoreError(f"simulated update failure for order {order.id}")
        applied = super().update(order, expected_status=expected_status)
        with self._record_lock:
            self.updates.append(UpdateCall(order.id, order.status, expected_status, applied))
        return applied

    def find_all_with_status(self, status: OrderStatus) -> List[Order]:
        with self._record_lock:
            if self.fail_queries:
                self.fail_queries -= 1
                raise OrderStoreError("simulated query failure")
        return super().find_all_with_status(status)

    def updates_for(self, order_id: int) -> List[UpdateCall]:
        with self._record_lock:
            return [call for call in self.updates if call.order_id == order_id]

    def update_count(self) -> int:
        with self._record_lock:
            return len(self.updates)


@pytest.fixture()
def fast_settings() -> Settings:
    return Settings(
        WORKER_COUNT=3,
        QUEUE_CAPACITY=100,
        SUBMIT_TIMEOUT_SECONDS=0.2,
        POLL_TIMEOUT_SECONDS=0.05,
        RESCAN_INTERVAL_SECONDS=0.2,
        SHUTDOWN_GRACE_SECONDS=2.0,
        VALIDATION_DELAY_SECONDS=0.02,
        FULFILLMENT_DELAY_SECONDS=0.03,
        MAX_RETRIES=0,
        RETRY_DELAY_SECONDS=0.01,
        USE_DATABASE=False,
    )


@pytest.fixture()
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture()
def sql_engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def sql_store(sql_engine) -> SqlOrderStore:
    return SqlOrderStore(create_session_factory(sql_engine))


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryOrderStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture()
def make_order() -> Callable[..., Order]:
    def _make(user_id: int = 1, status: OrderStatus = OrderStatus.PENDING, quantity: int = 2) -> Order:
        return Order(
            user_id=user_id,
            shipping_address=f"{user_id} Market Street",
            status=status,
            items=[
                OrderItem(
                    product_id=10 + user_id,
                    product_name="Widget",
                    quantity=quantity,
                    unit_price=Decimal("12.50"),
                )
            ],
        )

    return _make


@pytest.fixture()
def wait_for() -> Callable[..., bool]:
    def _wait(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.01) -> bool:
        end_time = time.monotonic() + timeout
        while time.monotonic() < end_time:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait
