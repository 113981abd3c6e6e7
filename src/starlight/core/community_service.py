"""Communities, subscriptions and profile details.

Community names are unique and are what content items and subscriptions
refer to, so renaming a community is not supported; edit the other fields
instead.  Subscription lists are owner-scoped and publish
``subscriptions-changed`` when they change.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.consistency import CascadeSummary, ConsistencyEngine
from starlight.core.event_bus import EventBus, Topic
from starlight.core.exceptions import DuplicateRecordError, NotFoundError
from starlight.core.identity_service import SessionContext
from starlight.core.schemas import Community, ProfileDetails, new_id

logger = logging.getLogger(__name__)


class CommunityDraft(BaseModel):
    name: str
    avatar: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    member_count: int = 0


class CommunityService:
    """Community administration, subscriptions and profile details.

    Args:
        store: The collection store.
        bus: Event bus for ``subscriptions-changed``.
        engine: Consistency engine used when deleting a community.
    """

    def __init__(self, store: CollectionStore, bus: EventBus, engine: ConsistencyEngine) -> None:
        self.store = store
        self.bus = bus
        self.engine = engine

    # ------------------------------------------------------------------
    # Communities
    # ------------------------------------------------------------------

    def list_communities(self) -> list[Community]:
        return self.store.get(Collection.COMMUNITIES)

    def create(self, session: SessionContext, draft: CommunityDraft) -> Community:
        """Create a community owned by the caller.

        Raises:
            DuplicateRecordError: A community with that name exists
                (compared case-insensitively).
        """
        wanted = draft.name.strip()
        if any(c.name.lower() == wanted.lower() for c in self.list_communities()):
            raise DuplicateRecordError(Collection.COMMUNITIES.value, wanted)
        community = Community(
            id=new_id("comm"),
            owner_email=session.email,
            **draft.model_dump(exclude={"name"}),
            name=wanted,
        )
        self.store.put(Collection.COMMUNITIES, community)
        logger.info("community: created", extra={"community_id": community.id, "community": wanted})
        self.bus.publish(Topic.SUBSCRIPTIONS_CHANGED)
        return community

    def update(self, session: SessionContext, community_id: str, draft: CommunityDraft) -> Community:
        """Edit a community's details.  Only the owner or an admin may do so.

        Raises:
            NotFoundError: Unknown id, or the caller may not edit it.
            ValueError: The draft tries to rename the community.
        """
        community = self._editable(session, community_id)
        if draft.name.strip() != community.name:
            raise ValueError("communities cannot be renamed")
        update = draft.model_dump(exclude={"name"})
        return self.store.update(
            Collection.COMMUNITIES, community_id, lambda c: c.model_copy(update=update)
        )

    def delete(self, session: SessionContext, community_id: str) -> CascadeSummary:
        """Delete a community and remove it from every subscription list."""
        if self.store.find(Collection.COMMUNITIES, community_id) is not None:
            self._editable(session, community_id)
        return self.engine.delete_community(community_id)

    def _editable(self, session: SessionContext, community_id: str) -> Community:
        community = self.store.find(Collection.COMMUNITIES, community_id)
        if community is None or not (session.is_admin or community.owner_email == session.email):
            raise NotFoundError(Collection.COMMUNITIES.value, community_id)
        return community

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscriptions(self, session: SessionContext) -> list[str]:
        return self.store.get(Collection.SUBSCRIPTIONS, owner=session.email)

    def toggle_subscription(self, session: SessionContext, community_name: str) -> bool:
        """Subscribe to or unsubscribe from a community name.

        A name that no longer names a community can still be unsubscribed.

        Returns:
            Whether the caller is now subscribed.

        Raises:
            NotFoundError: Subscribing to a name no community carries.
        """
        removed = self.store.delete(
            Collection.SUBSCRIPTIONS, lambda n: n == community_name, owner=session.email
        )
        if not removed:
            if not any(c.name == community_name for c in self.list_communities()):
                raise NotFoundError(Collection.COMMUNITIES.value, community_name)
            self.store.put(Collection.SUBSCRIPTIONS, community_name, owner=session.email)
        self.bus.publish(Topic.SUBSCRIPTIONS_CHANGED)
        return not removed

    # ------------------------------------------------------------------
    # Profile details
    # ------------------------------------------------------------------

    def get_profile(self, session: SessionContext) -> ProfileDetails:
        return self.store.get_mapping(Collection.PROFILE_DETAILS).get(
            session.email, ProfileDetails()
        )

    def update_profile(self, session: SessionContext, details: ProfileDetails) -> ProfileDetails:
        self.store.put_mapping_entry(Collection.PROFILE_DETAILS, session.email, details)
        return details
