from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from anyio import to_thread
from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from . import schemas
from .config import Settings, get_settings
from .errors import InvalidTransitionError, OrderNotFoundError, OrderStoreError
from .models import OrderItem, OrderStatus
from .pipeline import OrderPipeline
from .repositories import OrderStore, build_store
from .services import OrderService

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[OrderStore] = None,
    pipeline: Optional[OrderPipeline] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Application factory; the app starts the pipeline on startup and stops it on shutdown."""
    settings = settings or get_settings()
    store = store or build_store(settings)
    pipeline = pipeline or OrderPipeline(store, settings=settings)
    service = OrderService(store, pipeline)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pipeline.start()
        try:
            yield
        finally:
            # stop() may wait out the grace period; keep the event loop free.
            await to_thread.run_sync(pipeline.stop)

    app = FastAPI(title="orderflow", version=settings.VERSION, lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.order_service = service

    @app.exception_handler(OrderStoreError)
    async def store_error_handler(request: Request, exc: OrderStoreError):
        logger.error("Order store failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Order store unavailable"},
        )

    @app.get("/health", tags=["Health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/orders", response_model=schemas.OrderCreated, status_code=status.HTTP_201_CREATED, tags=["Orders"])
    def create_order(payload: schemas.OrderCreate):
        items = [
            OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in payload.items
        ]
        try:
            order, queued = service.create_order(
                user_id=payload.user_id,
                shipping_address=payload.shipping_address,
                items=items,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        body = schemas.OrderOut.model_validate(order).model_dump()
        return schemas.OrderCreated(**body, queued=queued)

    @app.get("/orders", response_model=List[schemas.OrderOut], tags=["Orders"])
    def list_orders(
        status_filter: Optional[OrderStatus] = Query(None, alias="status"),
        limit: int = Query(50, ge=1, le=500),
    ):
        return [schemas.OrderOut.model_validate(o) for o in service.list_orders(status=status_filter, limit=limit)]

    @app.get("/orders/{order_id}", response_model=schemas.OrderOut, tags=["Orders"])
    def get_order(order_id: int):
        try:
            order = service.get_order(order_id)
        except OrderNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
        return schemas.OrderOut.model_validate(order)

    @app.post("/orders/{order_id}/cancel", response_model=schemas.OrderOut, tags=["Orders"])
    def cancel_order(order_id: int):
        try:
            order = service.cancel_order(order_id)
        except OrderNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return schemas.OrderOut.model_validate(order)

    @app.get("/pipeline", response_model=schemas.PipelineStatus, tags=["Pipeline"])
    def pipeline_status():
        return pipeline.status()

    return app
