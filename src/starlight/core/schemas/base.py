"""Shared pydantic base for every persisted record.

Records are written with camelCase keys (``uploaderName``, ``reporterEmail``)
so that blobs stay compatible with slots written by the web client, and can
be constructed in Python by field name.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StoredRecord(BaseModel):
    """Base class for all records that live in a key-value slot."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=timezone.utc)


def new_id(prefix: str) -> str:
    """Return a synthetic record id such as ``"report-3f2a…"``."""
    return f"{prefix}-{uuid.uuid4().hex}"
