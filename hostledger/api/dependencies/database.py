"""Request-scoped database session."""
from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from hostledger.core.database import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Yield a session and discard anything a failed request left uncommitted."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = ["get_db"]
