"""Promotion of content items as ad campaigns.

A promotion creates one campaign variant (see
:mod:`starlight.core.schemas.campaign`) in the ``user-ad-campaigns``
collection.  Premium identities may pay with a free credit from the credit
ledger; the credit is spent before the campaign is written, so a refused
spend never leaves a campaign behind.
"""

from __future__ import annotations

import logging
from typing import Literal

from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.credit_ledger import CreditLedger
from starlight.core.exceptions import NotFoundError, PremiumRequiredError
from starlight.core.identity_service import SessionContext
from starlight.core.schemas import (
    CampaignKind,
    CampaignStatus,
    ContentItem,
    CreditKind,
    ShortsCampaign,
    SkippableCampaign,
    UnskippableCampaign,
    new_id,
)

logger = logging.getLogger(__name__)

FREE_CREDIT_SPEND = "Free Credit"
UNPAID_SPEND = "$0"

Campaign = SkippableCampaign | UnskippableCampaign | ShortsCampaign

_CREDIT_KIND: dict[CampaignKind, CreditKind] = {
    CampaignKind.SKIPPABLE: CreditKind.SKIPPABLE,
    CampaignKind.UNSKIPPABLE: CreditKind.UNSKIPPABLE,
    CampaignKind.SHORTS: CreditKind.SKIPPABLE,
}
"""Ledger counter charged for each campaign kind."""


class CampaignService:
    """Creates and manages ad campaigns.

    Args:
        store: The collection store.
        ledger: Credit ledger charged for free-credit promotions.
    """

    def __init__(self, store: CollectionStore, ledger: CreditLedger) -> None:
        self.store = store
        self.ledger = ledger

    def promote(
        self,
        session: SessionContext,
        content_id: str,
        kind: CampaignKind | str,
        *,
        title: str | None = None,
        use_credit: bool = False,
        duration: Literal["6s", "15s"] = "15s",
    ) -> Campaign:
        """Create a campaign promoting one content item.

        Raises:
            NotFoundError: The content item does not exist.
            PremiumRequiredError: *use_credit* without a premium membership.
            InsufficientCreditError: The matching ledger counter is zero.
        """
        kind = CampaignKind(kind)
        item = self.store.find(Collection.CONTENT_ITEMS, content_id)
        if item is None:
            raise NotFoundError(Collection.CONTENT_ITEMS.value, content_id)

        if use_credit:
            if not session.is_premium:
                raise PremiumRequiredError(session.email)
            self.ledger.decrement(session.email, _CREDIT_KIND[kind])

        campaign = self._build(session, item, kind, title or f"PROMO: {item.title}", use_credit, duration)
        self.store.put(Collection.AD_CAMPAIGNS, campaign, prepend=True)
        logger.info(
            "campaign: created",
            extra={
                "campaign_id": campaign.id,
                "kind": kind.value,
                "content_id": content_id,
                "free_credit": use_credit,
            },
        )
        return campaign

    def list_for_owner(self, session: SessionContext) -> list[Campaign]:
        return [
            c
            for c in self.store.get(Collection.AD_CAMPAIGNS)
            if c.is_owned_by(session.email, session.name)
        ]

    def list_all(self, admin: SessionContext) -> list[Campaign]:
        admin.require_admin()
        return self.store.get(Collection.AD_CAMPAIGNS)

    def set_status(self, admin: SessionContext, campaign_id: str, status: CampaignStatus | str) -> Campaign:
        admin.require_admin()
        status = CampaignStatus(status)
        return self.store.update(
            Collection.AD_CAMPAIGNS, campaign_id, lambda c: c.model_copy(update={"status": status})
        )

    def delete(self, session: SessionContext, campaign_id: str) -> bool:
        """Delete a campaign the caller owns (admins may delete any)."""
        return bool(
            self.store.delete(
                Collection.AD_CAMPAIGNS,
                lambda c: c.id == campaign_id
                and (session.is_admin or c.is_owned_by(session.email, session.name)),
            )
        )

    @staticmethod
    def _build(
        session: SessionContext,
        item: ContentItem,
        kind: CampaignKind,
        title: str,
        use_credit: bool,
        duration: Literal["6s", "15s"],
    ) -> Campaign:
        common = {
            "id": new_id(f"promo-{kind.value}"),
            "title": title,
            "status": CampaignStatus.IN_REVIEW,
            "spend": FREE_CREDIT_SPEND if use_credit else UNPAID_SPEND,
            "thumbnail_ref": item.thumbnail_ref,
            "owner_email": session.email,
            "owner_name": session.name,
            "source_content_id": item.id,
            "category": item.category,
        }
        match kind:
            case CampaignKind.SKIPPABLE:
                return SkippableCampaign(**common)
            case CampaignKind.UNSKIPPABLE:
                return UnskippableCampaign(duration=duration, **common)
            case CampaignKind.SHORTS:
                return ShortsCampaign(**common)
