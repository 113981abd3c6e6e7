"""Factory Boy factories for test data generation.

Available factories
-------------------
ContentItemFactory          — uploaded video
ShortFactory                — uploaded short
PlaylistFactory             — playlist (no owner, empty by default)
ReportFactory               — report with a fresh item snapshot
IdentityFactory             — regular identity
PremiumIdentityFactory      — premium identity
CommunityFactory            — community
BlockEntryFactory           — permanent block entry
LedgerEntryFactory          — full 5/5 ledger entry
SkippableCampaignFactory    — skippable ad campaign
UnskippableCampaignFactory  — unskippable ad campaign (15s)
ShortsCampaignFactory       — shorts ad campaign
"""

from __future__ import annotations

from tests.factories.campaigns import (
    ShortsCampaignFactory,
    SkippableCampaignFactory,
    UnskippableCampaignFactory,
)
from tests.factories.content import (
    ContentItemFactory,
    PlaylistFactory,
    ReportFactory,
    ShortFactory,
)
from tests.factories.identities import (
    BlockEntryFactory,
    CommunityFactory,
    IdentityFactory,
    LedgerEntryFactory,
    PremiumIdentityFactory,
)

__all__ = [
    "BlockEntryFactory",
    "CommunityFactory",
    "ContentItemFactory",
    "IdentityFactory",
    "LedgerEntryFactory",
    "PlaylistFactory",
    "PremiumIdentityFactory",
    "ReportFactory",
    "ShortFactory",
    "ShortsCampaignFactory",
    "SkippableCampaignFactory",
    "UnskippableCampaignFactory",
]
