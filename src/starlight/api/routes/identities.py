"""Login, session and account routes.

The caller's identity travels in the ``X-Starlight-Identity`` header; only
``/login`` and ``/restore`` work without it.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Response, status

from starlight.api.dependencies import AdminSession, CurrentSession, Services
from starlight.api.schemas import CascadeSummaryRead, PremiumUpdate, SessionRead
from starlight.core.schemas import Identity, IdentityAssertion

router = APIRouter()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/login", response_model=SessionRead)
async def login(assertion: IdentityAssertion, services: Services) -> SessionRead:
    """Start a session.  Blocked identities receive HTTP 403."""
    session = services.identities.login(assertion)
    return SessionRead.build(session, services.ledger.get(session.email))


@router.post("/restore", response_model=Optional[SessionRead])
async def restore(services: Services) -> Optional[SessionRead]:
    """Resume the remembered session, or return ``null``."""
    session = services.identities.restore()
    if session is None:
        return None
    return SessionRead.build(session, services.ledger.get(session.email))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(services: Services) -> Response:
    services.identities.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=SessionRead)
async def me(session: CurrentSession, services: Services) -> SessionRead:
    return SessionRead.build(session, services.ledger.get(session.email))


@router.post("/me/upgrade", response_model=SessionRead)
async def upgrade(session: CurrentSession, services: Services) -> SessionRead:
    """Buy premium: sets the flag and resets the free credits."""
    upgraded = services.identities.upgrade_to_premium(session)
    return SessionRead.build(upgraded, services.ledger.get(upgraded.email))


@router.delete("/me", response_model=CascadeSummaryRead)
async def delete_account(session: CurrentSession, services: Services) -> CascadeSummaryRead:
    return CascadeSummaryRead.build(services.identities.delete_account(session))


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.get("", response_model=list[Identity])
async def list_identities(admin: AdminSession, services: Services) -> list[Identity]:
    return services.identities.list_identities()


@router.put("/{email}/premium", response_model=Identity)
async def set_premium(
    email: str,
    body: PremiumUpdate,
    admin: AdminSession,
    services: Services,
) -> Identity:
    return services.identities.set_premium(admin, email, body.is_premium)


@router.delete("/{email}", response_model=CascadeSummaryRead)
async def delete_identity(email: str, admin: AdminSession, services: Services) -> CascadeSummaryRead:
    return CascadeSummaryRead.build(services.identities.delete_identity(admin, email))
