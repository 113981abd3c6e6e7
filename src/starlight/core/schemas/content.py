"""Content items and the records that embed snapshots of them.

A *snapshot* is a full copy of a :class:`ContentItem` stored inside another
record (a playlist, a report, a history list).  Editing the source item does
not update its snapshots; deleting it purges them (see
:mod:`starlight.core.consistency`).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import Field

from starlight.core.schemas.base import StoredRecord, utcnow


class ContentItem(StoredRecord):
    """An uploaded video or short.

    Ownership is keyed by ``uploader_email``.  Records written before that
    field existed carry only ``uploader_name``; those are matched by name.

    Attributes:
        id: Synthetic identifier.
        title: Title shown in feeds.
        description: Free-text description.
        thumbnail_ref: Image URL or data reference (stored as ``thumbnailUrl``).
        is_short: ``True`` for vertical short-form items.
        uploader_name: Display name of the uploader at upload time.
        uploader_email: Stable owner key.
        community_name: Community the item was published into.
        upload_timestamp: When the item was uploaded (stored as ``uploadDate``).
    """

    id: str
    title: str
    description: str = ""
    thumbnail_ref: Optional[str] = Field(default=None, alias="thumbnailUrl")
    is_short: bool = False
    uploader_name: Optional[str] = None
    uploader_email: Optional[str] = None
    uploader_avatar: Optional[str] = None
    community_name: str = ""
    community_avatar: Optional[str] = None
    upload_timestamp: Optional[datetime] = Field(default=None, alias="uploadDate")
    views: str = "0"
    duration: str = "0:00"
    category: Optional[str] = None
    sub_category: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None

    def is_owned_by(self, email: str, name: str | None = None) -> bool:
        """Return whether this item belongs to the given identity.

        The name is consulted only for legacy items without an owner e-mail.
        """
        if self.uploader_email is not None:
            return self.uploader_email == email
        return name is not None and self.uploader_name == name


class Playlist(StoredRecord):
    """A named, ordered sequence of content snapshots."""

    id: str
    name: str
    description: str = ""
    owner_email: Optional[str] = None
    videos: list[ContentItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    def contains(self, content_id: str) -> bool:
        return any(v.id == content_id for v in self.videos)


class ReportStatus(str, enum.Enum):
    """Moderation state of a report."""

    IN_REVIEW = "In Review"
    ACTION_TAKEN = "Action Taken"
    DISMISSED = "Dismissed"


class Report(StoredRecord):
    """A complaint filed against a content item.

    Attributes:
        id: Synthetic identifier.
        video: Snapshot of the reported item at report time.
        reporter_email: Identity that filed the report (``"anonymous"`` for
            signed-out reporters).
        reason: Reason selected by the reporter.
        status: Current moderation state.
        report_date: When the report was filed.
    """

    id: str
    video: ContentItem
    reporter_email: str
    reason: str
    status: ReportStatus = ReportStatus.IN_REVIEW
    report_date: datetime = Field(default_factory=utcnow)
