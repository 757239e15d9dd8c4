from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def create_db_engine(url: str) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        # Pipeline threads share the engine.
        kwargs["connect_args"] = {"check_same_thread": False}
    if url in _IN_MEMORY_URLS:
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    # Register the tables on Base before creating them.
    from . import sql_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
