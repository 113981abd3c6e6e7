"""Credit ledger routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter

from starlight.api.dependencies import CurrentSession, Services
from starlight.core.schemas import LedgerEntry

router = APIRouter()


@router.get("", response_model=Optional[LedgerEntry])
async def my_ledger(session: CurrentSession, services: Services) -> Optional[LedgerEntry]:
    """Return the caller's remaining free credits.

    Premium identities always have an entry (it is created on first use);
    others get ``null``.
    """
    if session.is_premium:
        return services.ledger.ensure(session.email)
    return services.ledger.get(session.email)
