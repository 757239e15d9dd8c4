from __future__ import annotations

from decimal import Decimal

import pytest

from orderflow.config import Settings
from orderflow.database import Base
from orderflow.errors import OrderStoreError
from orderflow.models import OrderStatus
from orderflow.repositories import InMemoryOrderStore, SqlOrderStore, build_store


def test_create_assigns_ids_and_round_trips(store, make_order) -> None:
    created = store.create(make_order(user_id=7, quantity=2))

    assert created.id is not None
    assert created.items[0].id is not None

    loaded = store.find_by_id(created.id)
    assert loaded is not None
    assert loaded.user_id == 7
    assert loaded.status == OrderStatus.PENDING
    assert loaded.shipping_address == "7 Market Street"
    assert [item.product_name for item in loaded.items] == ["Widget"]
    assert loaded.total_amount == Decimal("25.00")


def test_find_by_id_missing_returns_none(store) -> None:
    assert store.find_by_id(12345) is None


def test_pending_query_excludes_other_statuses(store, make_order) -> None:
    pending = store.create(make_order(user_id=1))
    completed = store.create(make_order(user_id=2, status=OrderStatus.COMPLETED))
    store.create(make_order(user_id=3, status=OrderStatus.CANCELLED))

    pending_ids = [o.id for o in store.find_all_with_status(OrderStatus.PENDING)]
    assert pending_ids == [pending.id]
    assert completed.id not in pending_ids
    assert [o.id for o in store.find_all_with_status(OrderStatus.COMPLETED)] == [completed.id]


def test_conditional_update(store, make_order) -> None:
    order = store.create(make_order())
    order.process()

    assert store.update(order, expected_status=OrderStatus.PENDING) is True
    assert store.find_by_id(order.id).status == OrderStatus.PROCESSING

    # A second writer still holding the pending precondition loses.
    assert store.update(order, expected_status=OrderStatus.PENDING) is False

    stale = store.find_by_id(order.id)
    stale.cancel()
    assert store.update(stale, expected_status=OrderStatus.PENDING) is False
    assert store.find_by_id(order.id).status == OrderStatus.PROCESSING


def test_unconditional_update(store, make_order) -> None:
    order = store.create(make_order())
    order.shipping_address = "99 New Road"
    order.cancel()
    assert store.update(order) is True

    loaded = store.find_by_id(order.id)
    assert loaded.status == OrderStatus.CANCELLED
    assert loaded.shipping_address == "99 New Road"


def test_update_unknown_order(store, make_order) -> None:
    ghost = make_order()
    ghost.id = 999
    assert store.update(ghost) is False


def test_returned_orders_are_detached(store, make_order) -> None:
    order = store.create(make_order())
    loaded = store.find_by_id(order.id)
    loaded.status = OrderStatus.COMPLETED
    assert store.find_by_id(order.id).status == OrderStatus.PENDING


def test_delete_and_count(store, make_order) -> None:
    first = store.create(make_order(user_id=1))
    store.create(make_order(user_id=2))
    assert store.count() == 2

    assert store.delete(first.id) is True
    assert store.delete(first.id) is False
    assert store.count() == 1
    assert store.find_by_id(first.id) is None


def test_find_all_newest_first_with_limit(store, make_order) -> None:
    created = [store.create(make_order(user_id=n)) for n in range(1, 4)]
    listed = store.find_all(limit=2)
    assert len(listed) == 2
    assert {o.id for o in listed} <= {o.id for o in created}
    assert len(store.find_all()) == 3


def test_sql_errors_surface_as_store_errors(sql_engine, sql_store, make_order) -> None:
    order = sql_store.create(make_order())
    Base.metadata.drop_all(bind=sql_engine)

    with pytest.raises(OrderStoreError):
        sql_store.find_by_id(order.id)
    with pytest.raises(OrderStoreError):
        sql_store.find_all_with_status(OrderStatus.PENDING)
    with pytest.raises(OrderStoreError):
        sql_store.update(order, expected_status=OrderStatus.PENDING)


def test_build_store_selects_backend() -> None:
    assert isinstance(build_store(Settings(USE_DATABASE=False)), InMemoryOrderStore)
    assert isinstance(build_store(Settings(USE_DATABASE=True, DATABASE_URL="sqlite://")), SqlOrderStore)
