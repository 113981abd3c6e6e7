"""Credit ledger entries."""

from __future__ import annotations

import enum

from pydantic import Field

from starlight.core.schemas.base import StoredRecord


class CreditKind(str, enum.Enum):
    """Which promotion counter a credit is drawn from."""

    SKIPPABLE = "skippable"
    UNSKIPPABLE = "unskippable"


class LedgerEntry(StoredRecord):
    """Remaining free promotion credits of one identity.

    Stored alone in the ``credit-ledger:{email}`` slot.  Counters are
    validated non-negative, so a corrupted negative blob is rejected on read.
    """

    owner_email: str
    skippable: int = Field(ge=0)
    unskippable: int = Field(ge=0)

    def remaining(self, kind: CreditKind) -> int:
        return self.skippable if kind is CreditKind.SKIPPABLE else self.unskippable
