"""Community, subscription and profile-details routes."""

from __future__ import annotations

from fastapi import APIRouter, status

from starlight.api.dependencies import CurrentSession, Services
from starlight.api.schemas import CascadeSummaryRead, ToggleRead
from starlight.core.community_service import CommunityDraft
from starlight.core.schemas import Community, ProfileDetails

router = APIRouter()


@router.get("", response_model=list[Community])
async def list_communities(services: Services) -> list[Community]:
    return services.communities.list_communities()


@router.post("", response_model=Community, status_code=status.HTTP_201_CREATED)
async def create(draft: CommunityDraft, session: CurrentSession, services: Services) -> Community:
    """Create a community.  A taken name yields HTTP 409."""
    return services.communities.create(session, draft)


# ---------------------------------------------------------------------------
# Subscriptions & profile (before /{community_id})
# ---------------------------------------------------------------------------


@router.get("/subscriptions", response_model=list[str])
async def subscriptions(session: CurrentSession, services: Services) -> list[str]:
    return services.communities.subscriptions(session)


@router.post("/subscriptions/{community_name}", response_model=ToggleRead)
async def toggle_subscription(
    community_name: str,
    session: CurrentSession,
    services: Services,
) -> ToggleRead:
    return ToggleRead(active=services.communities.toggle_subscription(session, community_name))


@router.get("/profile", response_model=ProfileDetails)
async def get_profile(session: CurrentSession, services: Services) -> ProfileDetails:
    return services.communities.get_profile(session)


@router.put("/profile", response_model=ProfileDetails)
async def update_profile(
    details: ProfileDetails,
    session: CurrentSession,
    services: Services,
) -> ProfileDetails:
    return services.communities.update_profile(session, details)


# ---------------------------------------------------------------------------
# Single community
# ---------------------------------------------------------------------------


@router.put("/{community_id}", response_model=Community)
async def update(
    community_id: str,
    draft: CommunityDraft,
    session: CurrentSession,
    services: Services,
) -> Community:
    return services.communities.update(session, community_id, draft)


@router.delete("/{community_id}", response_model=CascadeSummaryRead)
async def delete(community_id: str, session: CurrentSession, services: Services) -> CascadeSummaryRead:
    return CascadeSummaryRead.build(services.communities.delete(session, community_id))
