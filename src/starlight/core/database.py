"""Synchronous SQLAlchemy engine and session helpers for the SQL backend.

Provides:
- build_engine():        create an engine for a SQLAlchemy URL
- build_session_factory(): sessionmaker bound to that engine
- session_scope():       context manager that commits on clean exit and
                         rolls back on exception
- Base.metadata:         re-exported so the backend can create its table

The store is synchronous and single-writer, so no async engine is used.
SQLite URLs get ``check_same_thread=False`` because FastAPI may construct
the backend on a different thread from the one that later serves requests.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from starlight.core.models.base import Base  # noqa: F401


def build_engine(database_url: str) -> Engine:
    """Create the engine for *database_url*.

    In-memory SQLite (``sqlite://``) is pinned to a single connection so
    that the table survives between sessions.
    """
    if database_url.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool  # noqa: PLC0415

        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    return create_engine(database_url, echo=False, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Yield a Session that is committed on clean exit.

    Usage::

        with session_scope(factory) as session:
            session.merge(KeyValueSlot(key=k, value=v))
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
