"""Pydantic schemas for every persisted record type.

Sub-modules:
    base        — StoredRecord (camelCase aliases), utcnow, new_id
    identity    — Identity, IdentityAssertion
    content     — ContentItem, Playlist, Report, ReportStatus
    community   — Community, ProfileDetails
    campaign    — SkippableCampaign, UnskippableCampaign, ShortsCampaign, AdCampaign
    ledger      — LedgerEntry, CreditKind
    moderation  — BlockEntry, BlockType
"""

from __future__ import annotations

from starlight.core.schemas.base import StoredRecord, new_id, utcnow
from starlight.core.schemas.campaign import (
    AdCampaign,
    CampaignKind,
    CampaignStatus,
    ShortsCampaign,
    SkippableCampaign,
    UnskippableCampaign,
)
from starlight.core.schemas.community import Community, ProfileDetails
from starlight.core.schemas.content import ContentItem, Playlist, Report, ReportStatus
from starlight.core.schemas.identity import Identity, IdentityAssertion
from starlight.core.schemas.ledger import CreditKind, LedgerEntry
from starlight.core.schemas.moderation import BlockEntry, BlockType

__all__ = [
    "AdCampaign",
    "BlockEntry",
    "BlockType",
    "CampaignKind",
    "CampaignStatus",
    "Community",
    "ContentItem",
    "CreditKind",
    "Identity",
    "IdentityAssertion",
    "LedgerEntry",
    "Playlist",
    "ProfileDetails",
    "Report",
    "ReportStatus",
    "ShortsCampaign",
    "SkippableCampaign",
    "StoredRecord",
    "UnskippableCampaign",
    "new_id",
    "utcnow",
]
