from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import OrderStatus


class OrderItemCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    product_name: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class OrderCreate(BaseModel):
    user_id: int = Field(..., gt=0)
    shipping_address: str = Field(..., min_length=1)
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderItemOut(BaseModel):
    id: Optional[int] = None
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    id: int
    user_id: int
    shipping_address: str
    status: OrderStatus
    total_amount: Decimal
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderCreated(OrderOut):
    queued: bool


class PipelineStatus(BaseModel):
    running: bool
    queue_depth: int
    queue_capacity: int
    workers: int
    in_flight: List[int]
    counters: Dict[str, int]
