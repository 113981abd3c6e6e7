"""Content item, personal library, playlist and report routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, status

from starlight.api.dependencies import AdminSession, CurrentSession, OptionalSession, Services
from starlight.api.schemas import (
    CascadeSummaryRead,
    PlaylistCreate,
    ReportCreate,
    ReportStatusUpdate,
    ToggleRead,
)
from starlight.core.collection_store import Collection
from starlight.core.content_service import ContentDraft, ContentEdit
from starlight.core.schemas import ContentItem, Playlist, Report

router = APIRouter()

_LIBRARIES = {
    "history": Collection.HISTORY,
    "liked": Collection.LIKED,
    "watch-later": Collection.WATCH_LATER,
}


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
# Registered before the /{content_id} routes so "reports" is not taken for
# an id.


@router.post("/reports", response_model=Report, status_code=status.HTTP_201_CREATED)
async def submit_report(body: ReportCreate, session: OptionalSession, services: Services) -> Report:
    return services.content.submit_report(session, body.content_id, body.reason)


@router.get("/reports/filed", response_model=list[Report])
async def reports_filed(session: CurrentSession, services: Services) -> list[Report]:
    return services.content.reports_filed_by(session)


@router.get("/reports/received", response_model=list[Report])
async def reports_received(session: CurrentSession, services: Services) -> list[Report]:
    return services.content.reports_against(session)


@router.put("/reports/{report_id}/status", response_model=Report)
async def set_report_status(
    report_id: str,
    body: ReportStatusUpdate,
    admin: AdminSession,
    services: Services,
) -> Report:
    return services.content.set_report_status(admin, report_id, body.status)


@router.post("/reports/{report_id}/take-down", response_model=CascadeSummaryRead)
async def take_down(report_id: str, session: CurrentSession, services: Services) -> CascadeSummaryRead:
    return CascadeSummaryRead.build(services.content.take_down(session, report_id))


# ---------------------------------------------------------------------------
# Personal libraries
# ---------------------------------------------------------------------------


@router.get("/library/{library}", response_model=list[ContentItem])
async def library(library: str, session: CurrentSession, services: Services) -> list[ContentItem]:
    if library not in _LIBRARIES:
        raise ValueError(f"unknown library: {library}")
    return services.content.library(session, _LIBRARIES[library])


@router.delete("/library/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(session: CurrentSession, services: Services) -> None:
    services.content.clear_history(session)


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------


@router.get("/playlists", response_model=list[Playlist])
async def list_playlists(session: CurrentSession, services: Services) -> list[Playlist]:
    return services.content.list_playlists(session)


@router.post("/playlists", response_model=Playlist, status_code=status.HTTP_201_CREATED)
async def create_playlist(body: PlaylistCreate, session: CurrentSession, services: Services) -> Playlist:
    return services.content.create_playlist(
        session, body.name, body.description, body.first_item_id
    )


@router.post("/playlists/{playlist_id}/items/{content_id}", response_model=Playlist)
async def toggle_in_playlist(
    playlist_id: str,
    content_id: str,
    session: CurrentSession,
    services: Services,
) -> Playlist:
    return services.content.toggle_in_playlist(session, playlist_id, content_id)


@router.delete("/playlists/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(playlist_id: str, session: CurrentSession, services: Services) -> None:
    services.content.delete_playlist(session, playlist_id)


# ---------------------------------------------------------------------------
# Content items
# ---------------------------------------------------------------------------


@router.get("", response_model=list[ContentItem])
async def list_items(
    services: Services,
    shorts: Optional[bool] = Query(default=None),
) -> list[ContentItem]:
    return services.content.list_items(shorts=shorts)


@router.get("/mine", response_model=list[ContentItem])
async def my_items(session: CurrentSession, services: Services) -> list[ContentItem]:
    return services.content.items_owned_by(session)


@router.post("", response_model=ContentItem, status_code=status.HTTP_201_CREATED)
async def upload(draft: ContentDraft, session: CurrentSession, services: Services) -> ContentItem:
    return services.content.upload(session, draft)


@router.get("/{content_id}", response_model=ContentItem)
async def get_item(content_id: str, services: Services) -> ContentItem:
    return services.content.get_item(content_id)


@router.patch("/{content_id}", response_model=ContentItem)
async def edit(
    content_id: str,
    changes: ContentEdit,
    session: CurrentSession,
    services: Services,
) -> ContentItem:
    return services.content.edit(session, content_id, changes)


@router.delete("/{content_id}", response_model=CascadeSummaryRead)
async def delete(content_id: str, session: CurrentSession, services: Services) -> CascadeSummaryRead:
    return CascadeSummaryRead.build(services.content.delete(session, content_id))


@router.post("/{content_id}/watch", response_model=list[ContentItem])
async def record_watch(content_id: str, session: CurrentSession, services: Services) -> list[ContentItem]:
    """Record a view; returns the updated history."""
    return services.content.record_watch(session, content_id)


@router.post("/{content_id}/like", response_model=ToggleRead)
async def toggle_like(content_id: str, session: CurrentSession, services: Services) -> ToggleRead:
    return ToggleRead(active=services.content.toggle_like(session, content_id))


@router.post("/{content_id}/watch-later", response_model=ToggleRead)
async def toggle_watch_later(content_id: str, session: CurrentSession, services: Services) -> ToggleRead:
    return ToggleRead(active=services.content.toggle_watch_later(session, content_id))
