"""SQLAlchemy declarative base and shared mixins for the slot table.

Provides:
- Base: the DeclarativeBase subclass the slot model inherits from
- TimestampMixin: an updated_at column refreshed on every write
"""

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for Starlight models."""


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class TimestampMixin:
    """Adds an updated_at column maintained by the ORM.

    Set from Python rather than a server default so that SQLite and
    PostgreSQL behave the same.
    """

    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
