"""Database engine, session factory and declarative base."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .settings import get_settings


class Base(DeclarativeBase):
    """Base declarative class for all ORM models."""


def _build_engine(url: str) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)


_engine = _build_engine(get_settings().resolved_database_url)
SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_database(engine: Engine | None = None) -> None:
    """Create database tables for the current metadata."""
    import hostledger.core.models  # noqa: F401 ensures models are registered

    Base.metadata.create_all(bind=engine or _engine)


def get_engine() -> Engine:
    return _engine


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["Base", "SessionLocal", "init_database", "session_scope", "get_engine"]
