from __future__ import annotations

from .base import OrderStore
from .in_memory import InMemoryOrderStore
from .sql import SqlOrderStore
from ..config import Settings
from ..database import create_db_engine, create_session_factory, init_db


def build_store(settings: Settings) -> OrderStore:
    if not settings.USE_DATABASE:
        return InMemoryOrderStore()
    engine = create_db_engine(settings.DATABASE_URL)
    init_db(engine)
    return SqlOrderStore(create_session_factory(engine))


__all__ = ["OrderStore", "InMemoryOrderStore", "SqlOrderStore", "build_store"]
