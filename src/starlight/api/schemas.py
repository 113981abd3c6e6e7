"""Request and response bodies used only by the HTTP surface.

Persisted records are returned as-is (their camelCase aliases are the wire
format); the models here wrap service results that are not records.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from starlight.core.consistency import CascadeSummary
from starlight.core.identity_service import SessionContext
from starlight.core.schemas import (
    BlockType,
    CampaignKind,
    CampaignStatus,
    Identity,
    LedgerEntry,
    ReportStatus,
    StoredRecord,
)


class SessionRead(StoredRecord):
    identity: Identity
    is_admin: bool
    is_premium: bool
    ledger: Optional[LedgerEntry] = None

    @classmethod
    def build(cls, session: SessionContext, ledger: LedgerEntry | None = None) -> "SessionRead":
        return cls(
            identity=session.identity,
            is_admin=session.is_admin,
            is_premium=session.is_premium,
            ledger=ledger,
        )


class CascadeStepRead(StoredRecord):
    step: str
    error: str


class CascadeSummaryRead(StoredRecord):
    operation: str
    target: str
    removed: dict[str, int]
    total_removed: int
    primary_deleted: bool
    failures: list[CascadeStepRead] = Field(default_factory=list)

    @classmethod
    def build(cls, summary: CascadeSummary) -> "CascadeSummaryRead":
        return cls(
            operation=summary.operation,
            target=summary.target,
            removed=summary.removed,
            total_removed=summary.total_removed,
            primary_deleted=summary.primary_deleted,
            failures=[CascadeStepRead(step=f.step, error=f.error) for f in summary.failures],
        )


class ToggleRead(StoredRecord):
    """Result of a toggle operation (like, watch-later, subscription)."""

    active: bool


class PremiumUpdate(StoredRecord):
    is_premium: bool


class ReportCreate(StoredRecord):
    content_id: str
    reason: str = Field(min_length=1)


class ReportStatusUpdate(StoredRecord):
    status: ReportStatus


class PlaylistCreate(StoredRecord):
    name: str = Field(min_length=1)
    description: str = ""
    first_item_id: Optional[str] = None


class PromotionCreate(StoredRecord):
    content_id: str
    kind: CampaignKind
    title: Optional[str] = None
    use_credit: bool = False
    duration: Literal["6s", "15s"] = "15s"


class CampaignStatusUpdate(StoredRecord):
    status: CampaignStatus


class BlockCreate(StoredRecord):
    email: str
    block_type: BlockType
    name: Optional[str] = None
    days: Optional[int] = Field(default=None, ge=1)
