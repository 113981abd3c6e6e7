"""Ad campaign routes.

Promotions paid with a free credit answer HTTP 402 when the caller is not
premium or the matching ledger counter is exhausted.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from starlight.api.dependencies import AdminSession, CurrentSession, Services
from starlight.api.schemas import CampaignStatusUpdate, PromotionCreate

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def promote(body: PromotionCreate, session: CurrentSession, services: Services):
    return services.campaigns.promote(
        session,
        body.content_id,
        body.kind,
        title=body.title,
        use_credit=body.use_credit,
        duration=body.duration,
    )


@router.get("/mine")
async def my_campaigns(session: CurrentSession, services: Services):
    return services.campaigns.list_for_owner(session)


@router.get("")
async def all_campaigns(admin: AdminSession, services: Services):
    return services.campaigns.list_all(admin)


@router.put("/{campaign_id}/status")
async def set_status(
    campaign_id: str,
    body: CampaignStatusUpdate,
    admin: AdminSession,
    services: Services,
):
    return services.campaigns.set_status(admin, campaign_id, body.status)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(campaign_id: str, session: CurrentSession, services: Services) -> None:
    services.campaigns.delete(session, campaign_id)
