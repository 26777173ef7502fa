# tenant_lifecycle/db.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    """
    Bound every store round trip by settings.store_timeout_seconds.

    - sqlite: busy timeout (seconds) + allow use from the TestClient worker thread
    - postgres: server-side statement_timeout (milliseconds)
    """
    timeout = float(settings.store_timeout_seconds)
    if url.startswith("sqlite"):
        return {"timeout": timeout, "check_same_thread": False}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(timeout * 1000)}"}
    return {}


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.database_url),
    future=True,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """
    Request-scoped session.

    Rolls back on any exception so a failed statement does not poison later
    queries in the same request (Postgres "InFailedSqlTransaction").
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
