"""Ad campaign variants.

Campaigns are a tagged union on ``kind``.  Blobs written by the web client
carry no tag; :func:`campaign_kind` infers it from the fields present so old
slots still decode::

    {"ctr": "0.00%", ...}       -> skippable
    {"duration": "15s", ...}    -> unskippable
    anything else               -> shorts
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Discriminator, Field, Tag

from starlight.core.schemas.base import StoredRecord


class CampaignStatus(str, enum.Enum):
    ACTIVE = "Active"
    PAUSED = "Paused"
    ENDED = "Ended"
    IN_REVIEW = "In Review"


class CampaignKind(str, enum.Enum):
    SKIPPABLE = "skippable"
    UNSKIPPABLE = "unskippable"
    SHORTS = "shorts"


class _CampaignBase(StoredRecord):
    """Fields common to every campaign variant.

    ``owner_name`` is persisted as ``communityName`` because the web client
    overloaded that field to hold the promoter's display name.
    """

    id: str
    title: str
    status: CampaignStatus = CampaignStatus.IN_REVIEW
    spend: str = "$0"
    thumbnail_ref: Optional[str] = Field(default=None, alias="thumbnailUrl")
    owner_email: Optional[str] = None
    owner_name: Optional[str] = Field(default=None, alias="communityName")
    source_content_id: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None

    def is_owned_by(self, email: str, name: str | None = None) -> bool:
        """Return whether the campaign belongs to the given identity.

        Legacy campaigns without ``owner_email`` are matched by name.
        """
        if self.owner_email is not None:
            return self.owner_email == email
        return name is not None and self.owner_name == name


class SkippableCampaign(_CampaignBase):
    kind: Literal["skippable"] = "skippable"
    views: str = "0"
    ctr: str = "0.00%"


class UnskippableCampaign(_CampaignBase):
    kind: Literal["unskippable"] = "unskippable"
    impressions: str = "0"
    duration: Literal["6s", "15s"] = "15s"


class ShortsCampaign(_CampaignBase):
    kind: Literal["shorts"] = "shorts"
    impressions: str = "0"


def campaign_kind(value: Any) -> str:
    """Return the discriminant for a raw or validated campaign."""
    if isinstance(value, dict):
        kind = value.get("kind")
        if kind:
            return str(kind)
        if "ctr" in value or "views" in value:
            return CampaignKind.SKIPPABLE.value
        if "duration" in value:
            return CampaignKind.UNSKIPPABLE.value
        return CampaignKind.SHORTS.value
    return getattr(value, "kind", CampaignKind.SHORTS.value)


AdCampaign = Annotated[
    Union[
        Annotated[SkippableCampaign, Tag("skippable")],
        Annotated[UnskippableCampaign, Tag("unskippable")],
        Annotated[ShortsCampaign, Tag("shorts")],
    ],
    Discriminator(campaign_kind),
]
"""Any campaign variant; validate through a ``TypeAdapter(AdCampaign)``."""
