"""Content items, personal libraries, playlists and reports.

Every mutation publishes the topic views rely on:

- uploads, edits, deletions and take-downs → ``content-changed``
- playlist changes (and deletions, which purge playlist snapshots)
  → ``playlists-changed``

History, liked and watch-later are owner-scoped lists of snapshots.  The
store does not deduplicate them, so this service does: a content id appears
at most once per list, newest first.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.consistency import CascadeSummary, ConsistencyEngine
from starlight.core.event_bus import EventBus, Topic
from starlight.core.exceptions import NotFoundError
from starlight.core.identity_service import SessionContext
from starlight.core.schemas import (
    ContentItem,
    Playlist,
    Report,
    ReportStatus,
    new_id,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class ContentDraft(BaseModel):
    """Fields supplied by the uploader; the service fills in the rest."""

    title: str
    description: str = ""
    thumbnail_ref: Optional[str] = None
    is_short: bool = False
    community_name: str = ""
    duration: str = "0:00"
    category: Optional[str] = None
    sub_category: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None


class ContentEdit(BaseModel):
    """Editable fields of an uploaded item.  ``None`` means unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    thumbnail_ref: Optional[str] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None


class ContentService:
    """Operations on content items and the collections that embed them.

    Args:
        store: The collection store.
        bus: Event bus for change topics.
        engine: Consistency engine used for deletions.
        history_limit: Maximum snapshots kept in a watch history.
    """

    def __init__(
        self,
        store: CollectionStore,
        bus: EventBus,
        engine: ConsistencyEngine,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self.store = store
        self.bus = bus
        self.engine = engine
        self.history_limit = history_limit

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    def list_items(self, *, shorts: bool | None = None) -> list[ContentItem]:
        items = self.store.get(Collection.CONTENT_ITEMS)
        if shorts is None:
            return items
        return [i for i in items if i.is_short == shorts]

    def get_item(self, content_id: str) -> ContentItem:
        item = self.store.find(Collection.CONTENT_ITEMS, content_id)
        if item is None:
            raise NotFoundError(Collection.CONTENT_ITEMS.value, content_id)
        return item

    def items_owned_by(self, session: SessionContext) -> list[ContentItem]:
        return [
            i
            for i in self.store.get(Collection.CONTENT_ITEMS)
            if i.is_owned_by(session.email, session.name)
        ]

    def upload(self, session: SessionContext, draft: ContentDraft) -> ContentItem:
        item = ContentItem(
            id=new_id("short" if draft.is_short else "video"),
            uploader_name=session.name,
            uploader_email=session.email,
            uploader_avatar=session.identity.avatar,
            upload_timestamp=utcnow(),
            **draft.model_dump(),
        )
        self.store.put(Collection.CONTENT_ITEMS, item, prepend=True)
        logger.info("content: uploaded", extra={"content_id": item.id, "email": session.email})
        self.bus.publish(Topic.CONTENT_CHANGED)
        return item

    def edit(self, session: SessionContext, content_id: str, changes: ContentEdit) -> ContentItem:
        """Apply *changes* to an owned item.

        Snapshots of the item already embedded elsewhere are not updated.

        Raises:
            NotFoundError: The item does not exist or is not the caller's.
        """
        self._owned_item(session, content_id)
        update = changes.model_dump(exclude_none=True)
        item = self.store.update(
            Collection.CONTENT_ITEMS, content_id, lambda i: i.model_copy(update=update)
        )
        self.bus.publish(Topic.CONTENT_CHANGED)
        return item

    def delete(self, session: SessionContext, content_id: str) -> CascadeSummary:
        """Delete an item the caller owns (administrators may delete any).

        Deleting an unknown id is a no-op.
        """
        if not session.is_admin:
            item = self.store.find(Collection.CONTENT_ITEMS, content_id)
            if item is not None and not item.is_owned_by(session.email, session.name):
                raise NotFoundError(Collection.CONTENT_ITEMS.value, content_id)
        return self.engine.delete_content_item(content_id)

    def _owned_item(self, session: SessionContext, content_id: str) -> ContentItem:
        item = self.get_item(content_id)
        if not session.is_admin and not item.is_owned_by(session.email, session.name):
            raise NotFoundError(Collection.CONTENT_ITEMS.value, content_id)
        return item

    # ------------------------------------------------------------------
    # Personal libraries
    # ------------------------------------------------------------------

    def record_watch(self, session: SessionContext, content_id: str) -> list[ContentItem]:
        """Move the item to the front of the caller's history."""
        item = self.get_item(content_id)
        history = [v for v in self.store.get(Collection.HISTORY, owner=session.email) if v.id != item.id]
        history.insert(0, item)
        history = history[: self.history_limit]
        self.store.replace(Collection.HISTORY, history, owner=session.email)
        return history

    def toggle_like(self, session: SessionContext, content_id: str) -> bool:
        """Like or un-like an item.  Returns whether it is now liked."""
        return self._toggle(Collection.LIKED, session, content_id)

    def toggle_watch_later(self, session: SessionContext, content_id: str) -> bool:
        """Add or remove an item from watch-later.  Returns whether it is now saved."""
        return self._toggle(Collection.WATCH_LATER, session, content_id)

    def library(self, session: SessionContext, collection: Collection) -> list[ContentItem]:
        if collection not in (Collection.HISTORY, Collection.LIKED, Collection.WATCH_LATER):
            raise ValueError(f"{collection.value} is not a personal library")
        return self.store.get(collection, owner=session.email)

    def clear_history(self, session: SessionContext) -> None:
        self.store.drop(Collection.HISTORY, owner=session.email)

    def _toggle(self, collection: Collection, session: SessionContext, content_id: str) -> bool:
        removed = self.store.delete(collection, lambda v: v.id == content_id, owner=session.email)
        if removed:
            return False
        item = self.get_item(content_id)
        self.store.put(collection, item, owner=session.email, prepend=True)
        return True

    # ------------------------------------------------------------------
    # Playlists
    # ------------------------------------------------------------------

    def list_playlists(self, session: SessionContext) -> list[Playlist]:
        """Playlists owned by the caller, plus legacy playlists with no owner."""
        return [
            p
            for p in self.store.get(Collection.PLAYLISTS)
            if p.owner_email in (None, session.email)
        ]

    def create_playlist(
        self,
        session: SessionContext,
        name: str,
        description: str = "",
        first_item_id: str | None = None,
    ) -> Playlist:
        videos = [self.get_item(first_item_id)] if first_item_id else []
        playlist = Playlist(
            id=new_id("playlist"),
            name=name,
            description=description,
            owner_email=session.email,
            videos=videos,
        )
        self.store.put(Collection.PLAYLISTS, playlist)
        self.bus.publish(Topic.PLAYLISTS_CHANGED)
        return playlist

    def toggle_in_playlist(self, session: SessionContext, playlist_id: str, content_id: str) -> Playlist:
        """Add the item to the playlist, or remove it if already present."""
        self._owned_playlist(session, playlist_id)

        def _toggle(playlist: Playlist) -> Playlist:
            if playlist.contains(content_id):
                videos = [v for v in playlist.videos if v.id != content_id]
            else:
                videos = [*playlist.videos, self.get_item(content_id)]
            return playlist.model_copy(update={"videos": videos})

        playlist = self.store.update(Collection.PLAYLISTS, playlist_id, _toggle)
        self.bus.publish(Topic.PLAYLISTS_CHANGED)
        return playlist

    def delete_playlist(self, session: SessionContext, playlist_id: str) -> bool:
        playlist = self.store.find(Collection.PLAYLISTS, playlist_id)
        if playlist is None:
            return False
        self._owned_playlist(session, playlist_id)
        self.store.delete(Collection.PLAYLISTS, lambda p: p.id == playlist_id)
        self.bus.publish(Topic.PLAYLISTS_CHANGED)
        return True

    def _owned_playlist(self, session: SessionContext, playlist_id: str) -> Playlist:
        playlist = self.store.find(Collection.PLAYLISTS, playlist_id)
        if playlist is None or playlist.owner_email not in (None, session.email):
            raise NotFoundError(Collection.PLAYLISTS.value, playlist_id)
        return playlist

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def submit_report(self, session: SessionContext | None, content_id: str, reason: str) -> Report:
        """File a report; signed-out reporters are recorded as ``"anonymous"``."""
        report = Report(
            id=new_id("report"),
            video=self.get_item(content_id),
            reporter_email=session.email if session is not None else "anonymous",
            reason=reason,
        )
        self.store.put(Collection.REPORTS, report, prepend=True)
        logger.info(
            "content: report filed",
            extra={"report_id": report.id, "content_id": content_id, "reason": reason},
        )
        return report

    def reports_filed_by(self, session: SessionContext) -> list[Report]:
        return [r for r in self.store.get(Collection.REPORTS) if r.reporter_email == session.email]

    def reports_against(self, session: SessionContext) -> list[Report]:
        """Reports against the caller's content (all reports for an admin)."""
        reports = self.store.get(Collection.REPORTS)
        if session.is_admin:
            return reports
        owned = {i.id for i in self.items_owned_by(session)}
        return [r for r in reports if r.video.id in owned or r.video.is_owned_by(session.email, session.name)]

    def set_report_status(self, admin: SessionContext, report_id: str, status: ReportStatus | str) -> Report:
        admin.require_admin()
        status = ReportStatus(status)
        return self.store.update(
            Collection.REPORTS, report_id, lambda r: r.model_copy(update={"status": status})
        )

    def take_down(self, session: SessionContext, report_id: str) -> CascadeSummary:
        """Delete the reported item (and with it every report against it)."""
        report = self.store.find(Collection.REPORTS, report_id)
        if report is None:
            raise NotFoundError(Collection.REPORTS.value, report_id)
        return self.delete(session, report.video.id)
