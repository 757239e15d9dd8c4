from __future__ import annotations

import argparse
import logging
import threading
from decimal import Decimal
from typing import List, Optional

from .config import get_settings
from .models import OrderItem
from .pipeline import OrderPipeline
from .repositories import build_store
from .services import OrderService


def _setup_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the order fulfillment pipeline")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API (pipeline runs inside it)")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for --serve")
    parser.add_argument("--port", type=int, default=8000, help="Port for --serve")
    parser.add_argument("--seed", type=int, default=0, help="Create this many demo orders before starting")
    parser.add_argument(
        "--run-seconds",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _seed_orders(service: OrderService, count: int) -> None:
    for n in range(1, count + 1):
        service.create_order(
            user_id=n,
            shipping_address=f"{n} Demo Street",
            items=[OrderItem(product_id=n, product_name=f"Product {n}", quantity=1 + n % 3, unit_price=Decimal("9.99"))],
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    _setup_logging(settings.LOG_LEVEL, args.verbose)

    if args.serve:
        import uvicorn

        from .api import create_app

        uvicorn.run(create_app(settings=settings), host=args.host, port=args.port, log_level="info")
        return 0

    store = build_store(settings)
    pipeline = OrderPipeline(store, settings=settings)
    service = OrderService(store, pipeline)
    pipeline.start()
    try:
        _seed_orders(service, args.seed)
        threading.Event().wait(args.run_seconds)
    except KeyboardInterrupt:
        logging.info("Interrupted, shutting down")
    finally:
        pipeline.stop()
    logging.info("Pipeline summary: %s", pipeline.status()["counters"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
