from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, select, update as sql_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from .base import OrderStore
from ..errors import OrderStoreError
from ..models import Order, OrderItem, OrderStatus, ensure_utc, utcnow
from ..sql_models import OrderItemRecord, OrderRecord

logger = logging.getLogger(__name__)


class SqlOrderStore(OrderStore):
    """
    Relational order store.

    A session is opened per call, so nothing pins a connection while a worker
    sits in a processing stage.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(self, order: Order) -> Order:
        record = OrderRecord(
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderItemRecord(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ],
        )
        try:
            with self._session_factory() as db:
                db.add(record)
                db.commit()
                db.refresh(record)
                return _to_domain(record)
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to create order for user {order.user_id}: {exc}") from exc

    def find_by_id(self, order_id: int) -> Optional[Order]:
        try:
            with self._session_factory() as db:
                record = db.get(OrderRecord, order_id, options=[selectinload(OrderRecord.items)])
                return _to_domain(record) if record else None
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to load order {order_id}: {exc}") from exc

    def find_all(self, limit: Optional[int] = None) -> List[Order]:
        stmt = (
            select(OrderRecord)
            .options(selectinload(OrderRecord.items))
            .order_by(OrderRecord.created_at.desc(), OrderRecord.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt, "all orders")

    def find_all_with_status(self, status: OrderStatus) -> List[Order]:
        stmt = (
            select(OrderRecord)
            .options(selectinload(OrderRecord.items))
            .where(OrderRecord.status == status)
            .order_by(OrderRecord.created_at, OrderRecord.id)
        )
        return self._fetch(stmt, f"{status.value} orders")

    def update(self, order: Order, expected_status: Optional[OrderStatus] = None) -> bool:
        stmt = sql_update(OrderRecord).where(OrderRecord.id == order.id)
        if expected_status is not None:
            stmt = stmt.where(OrderRecord.status == expected_status)
        stmt = stmt.values(
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            shipping_address=order.shipping_address,
            updated_at=utcnow(),
        )
        try:
            with self._session_factory() as db:
                matched = db.execute(stmt).rowcount
                db.commit()
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to update order {order.id}: {exc}") from exc
        if matched != 1:
            logger.debug(
                "Update of order %s matched no row (expected status=%s)",
                order.id,
                expected_status.value if expected_status else None,
            )
            return False
        return True

    def delete(self, order_id: int) -> bool:
        try:
            with self._session_factory() as db:
                record = db.get(OrderRecord, order_id)
                if record is None:
                    return False
                db.delete(record)
                db.commit()
                return True
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to delete order {order_id}: {exc}") from exc

    def count(self) -> int:
        try:
            with self._session_factory() as db:
                return db.scalar(select(func.count()).select_from(OrderRecord)) or 0
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to count orders: {exc}") from exc

    def _fetch(self, stmt, description: str) -> List[Order]:
        try:
            with self._session_factory() as db:
                return [_to_domain(record) for record in db.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            raise OrderStoreError(f"Failed to query {description}: {exc}") from exc


def _to_domain(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        user_id=record.user_id,
        shipping_address=record.shipping_address,
        status=record.status,
        items=[
            OrderItem(
                id=item.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in record.items
        ],
        created_at=ensure_utc(record.created_at),
        updated_at=ensure_utc(record.updated_at),
    )
