"""ORM model for the SQL-backed key-value store.

One row per slot.  The value column holds the codec's JSON text verbatim;
nothing in the SQL layer understands record structure.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from starlight.core.models.base import Base, TimestampMixin


class KeyValueSlot(TimestampMixin, Base):
    """A named slot of the host key-value text store.

    Attributes:
        key: Fully qualified slot name (including the configured prefix).
        value: UTF-8 JSON text written by :mod:`starlight.core.codec`.
    """

    __tablename__ = "kv_slots"

    key: Mapped[str] = mapped_column(sa.String(512), primary_key=True)
    value: Mapped[str] = mapped_column(sa.Text, nullable=False)

    def __repr__(self) -> str:
        return f"<KeyValueSlot key={self.key!r} bytes={len(self.value)}>"
