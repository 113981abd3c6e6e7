"""Host key-value text store implementations.

Every backend stores opaque UTF-8 text under string keys and writes through:
when ``set``/``delete`` return, the value is durable in the backend.  Backend
errors are re-raised as :class:`~starlight.core.exceptions.StorageError` so
the collection store and the consistency engine need to handle only one
exception type.

Use :func:`build_backend` to pick an implementation from
``Settings.storage_url``::

    memory://                      InMemoryBackend
    redis://localhost:6379/0       RedisBackend
    sqlite:///./starlight.db       SqlAlchemyBackend (any SQLAlchemy URL)
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import redis
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from starlight.core.database import build_engine, build_session_factory, session_scope
from starlight.core.exceptions import StorageError
from starlight.core.models import Base, KeyValueSlot

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueBackend(Protocol):
    """Minimal contract of the host-provided store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryBackend:
    """Process-local dict store.  Used by tests and ``memory://``."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def __len__(self) -> int:
        return len(self._data)


# ---------------------------------------------------------------------------
# SQL (SQLAlchemy)
# ---------------------------------------------------------------------------


class SqlAlchemyBackend:
    """One ``kv_slots`` row per key.

    The table is created on construction if it does not exist.

    Args:
        database_url: Any SQLAlchemy URL, e.g. ``sqlite:///./starlight.db``.
    """

    def __init__(self, database_url: str) -> None:
        self._engine = build_engine(database_url)
        self._sessions = build_session_factory(self._engine)
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot initialise kv_slots: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            with session_scope(self._sessions) as session:
                row = session.get(KeyValueSlot, key)
                return row.value if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"read failed: {exc}", slot=key) from exc

    def set(self, key: str, value: str) -> None:
        try:
            with session_scope(self._sessions) as session:
                session.merge(KeyValueSlot(key=key, value=value))
        except SQLAlchemyError as exc:
            raise StorageError(f"write failed: {exc}", slot=key) from exc

    def delete(self, key: str) -> None:
        try:
            with session_scope(self._sessions) as session:
                session.execute(delete(KeyValueSlot).where(KeyValueSlot.key == key))
        except SQLAlchemyError as exc:
            raise StorageError(f"delete failed: {exc}", slot=key) from exc

    def keys(self, prefix: str) -> list[str]:
        stmt = (
            select(KeyValueSlot.key)
            .where(KeyValueSlot.key.startswith(prefix, autoescape=True))
            .order_by(KeyValueSlot.key)
        )
        try:
            with session_scope(self._sessions) as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise StorageError(f"key scan failed: {exc}", slot=prefix) from exc

    def dispose(self) -> None:
        self._engine.dispose()


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisBackend:
    """One Redis string per key.

    Args:
        client: A ``redis.Redis`` created with ``decode_responses=True``.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise StorageError(f"read failed: {exc}", slot=key) from exc

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value)
        except redis.RedisError as exc:
            raise StorageError(f"write failed: {exc}", slot=key) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as exc:
            raise StorageError(f"delete failed: {exc}", slot=key) from exc

    def keys(self, prefix: str) -> list[str]:
        pattern = _glob_escape(prefix) + "*"
        try:
            return sorted(self._client.scan_iter(match=pattern))
        except redis.RedisError as exc:
            raise StorageError(f"key scan failed: {exc}", slot=prefix) from exc

    def close(self) -> None:
        self._client.close()


def _glob_escape(text: str) -> str:
    return "".join("\\" + c if c in "*?[]\\" else c for c in text)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_backend(storage_url: str) -> KeyValueBackend:
    """Return the backend named by *storage_url*."""
    if storage_url.startswith("memory://"):
        logger.info("backends: using in-memory store")
        return InMemoryBackend()
    if storage_url.startswith(("redis://", "rediss://", "unix://")):
        logger.info("backends: using redis store")
        return RedisBackend.from_url(storage_url)
    logger.info("backends: using SQL store", extra={"dialect": storage_url.split(":", 1)[0]})
    return SqlAlchemyBackend(storage_url)
