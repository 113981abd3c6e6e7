"""Administrator block-list records."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from starlight.core.schemas.base import StoredRecord


class BlockType(str, enum.Enum):
    PERMANENT = "permanent"
    TEMPORARY = "temporary"


class BlockEntry(StoredRecord):
    """An administrator-issued login block.

    ``expires_at`` is set only for temporary blocks.  The web client stored
    it as epoch milliseconds; pydantic parses those into an aware datetime.
    """

    email: str
    name: Optional[str] = None
    block_type: BlockType
    expires_at: Optional[datetime] = None
