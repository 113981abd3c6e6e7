"""SQLAlchemy ORM models for Starlight.

Only the SQL key-value backend uses these; every other component talks to
the store through :class:`starlight.core.collection_store.CollectionStore`.
"""

from __future__ import annotations

from starlight.core.models.base import Base, TimestampMixin
from starlight.core.models.slots import KeyValueSlot

__all__ = [
    "Base",
    "KeyValueSlot",
    "TimestampMixin",
]
