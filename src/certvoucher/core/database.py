"""Database engines, session factory and declarative bases.

Two backing stores are in play. Voucher requests and voucher codes live in the
hosted store (``voucher_database_url``); every other table lives in the local
store (``database_url``). Each store has its own declarative base and the
session factory binds each base to its engine, so a statement is routed by the
entity it touches.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

settings = get_settings()


def build_engine(url: str) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:"):
        return create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if parsed.get_backend_name() == "sqlite":
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, future=True, pool_pre_ping=True)


engine = build_engine(settings.database_url)
voucher_engine = build_engine(settings.voucher_database_url)

Base = declarative_base()
VoucherBase = declarative_base()

SessionLocal = sessionmaker(
    binds={Base: engine, VoucherBase: voucher_engine},
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def create_all() -> None:
    """Create missing tables in both stores."""

    Base.metadata.create_all(bind=engine)
    VoucherBase.metadata.create_all(bind=voucher_engine)


def get_db() -> Generator:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
