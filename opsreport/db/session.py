"""
OpsReport Database Session Management.

Single entry point for creating the engine + session factory used by the
SQL store backend, plus a context manager for scoped DB access.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from opsreport.db.base import Base


def create_db_engine(db_url: str, **kwargs: Any) -> Engine:
    """
    Create an engine for ``db_url``.

    In-memory SQLite gets a StaticPool so every session (and every worker
    thread used by the async store wrapper) sees the same database.
    """
    options: Dict[str, Any] = dict(kwargs)
    if db_url.startswith("sqlite"):
        options.setdefault("connect_args", {"check_same_thread": False})
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            options.setdefault("poolclass", StaticPool)
    else:
        options.setdefault("pool_pre_ping", True)
    return create_engine(db_url, **options)


def init_db(db_url: str, create_tables: bool = False, **kwargs: Any) -> sessionmaker:
    """
    Build a session factory for ``db_url``.

    Args:
        db_url: SQLAlchemy URL (sqlite:///opsreport.db, postgresql://...).
        create_tables: Run ``Base.metadata.create_all()``; used by ``opsreport init``
            and tests. Existing tables are left untouched.
    """
    engine = create_db_engine(db_url, **kwargs)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Commit on success, roll back on error, always close."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
