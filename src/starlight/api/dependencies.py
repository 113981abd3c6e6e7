"""FastAPI dependency injection providers.

The application root (:func:`starlight.api.main.create_app`) builds one
:class:`AppServices` container and stores it on ``app.state.services``.  Route
handlers never construct services themselves; they ask for them here.

Dependency hierarchy::

    get_services              — the AppServices container
    get_optional_session      — None when no X-Starlight-Identity header
    get_session               — requires a known identity
    require_admin             — additionally requires the admin identity
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from starlight.config.settings import Settings
from starlight.core.access_guard import AccessGuard
from starlight.core.backends import KeyValueBackend, build_backend
from starlight.core.campaign_service import CampaignService
from starlight.core.collection_store import CollectionStore
from starlight.core.community_service import CommunityService
from starlight.core.consistency import ConsistencyEngine
from starlight.core.content_service import ContentService
from starlight.core.credit_ledger import CreditLedger
from starlight.core.event_bus import EventBus
from starlight.core.exceptions import NotAuthenticatedError
from starlight.core.identity_service import IdentityService, SessionContext

SESSION_HEADER = "X-Starlight-Identity"


# ---------------------------------------------------------------------------
# Service container
# ---------------------------------------------------------------------------


@dataclass
class AppServices:
    """Every long-lived object of one application instance."""

    backend: KeyValueBackend
    store: CollectionStore
    bus: EventBus
    engine: ConsistencyEngine
    ledger: CreditLedger
    guard: AccessGuard
    identities: IdentityService
    content: ContentService
    communities: CommunityService
    campaigns: CampaignService


def build_services(settings: Settings, backend: KeyValueBackend | None = None) -> AppServices:
    """Wire the persistence layer and services from *settings*.

    Args:
        settings: Application settings.
        backend: Pre-built backend (tests pass an ``InMemoryBackend``);
            built from ``settings.storage_url`` when omitted.
    """
    backend = backend if backend is not None else build_backend(settings.storage_url)
    store = CollectionStore(backend, key_prefix=settings.key_prefix)
    bus = EventBus()
    ledger = CreditLedger(store, starting_grant=settings.starting_credit_grant)
    engine = ConsistencyEngine(store, bus, ledger)
    guard = AccessGuard(store, temporary_block_days=settings.temporary_block_days)
    return AppServices(
        backend=backend,
        store=store,
        bus=bus,
        engine=engine,
        ledger=ledger,
        guard=guard,
        identities=IdentityService(store, guard, ledger, engine, settings.admin_email),
        content=ContentService(store, bus, engine, history_limit=settings.history_limit),
        communities=CommunityService(store, bus, engine),
        campaigns=CampaignService(store, ledger),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


Services = Annotated[AppServices, Depends(get_services)]


# ---------------------------------------------------------------------------
# Session dependencies
# ---------------------------------------------------------------------------


async def get_optional_session(
    services: Services,
    identity: Annotated[Optional[str], Header(alias=SESSION_HEADER)] = None,
) -> Optional[SessionContext]:
    """Return the caller's session, or ``None`` for anonymous requests.

    Raises:
        NotAuthenticatedError: The header names an unknown identity.
    """
    if not identity:
        return None
    return services.identities.session_for(identity)


async def get_session(
    session: Annotated[Optional[SessionContext], Depends(get_optional_session)],
) -> SessionContext:
    """Require the ``X-Starlight-Identity`` header to name a known identity.

    Raises:
        NotAuthenticatedError: Mapped to HTTP 401 by the app's handlers.
    """
    if session is None:
        raise NotAuthenticatedError(f"{SESSION_HEADER} header required")
    return session


async def require_admin(
    session: Annotated[SessionContext, Depends(get_session)],
) -> SessionContext:
    """Require the configured administrator identity.

    Raises:
        AdminRequiredError: Mapped to HTTP 403.
    """
    session.require_admin()
    return session


CurrentSession = Annotated[SessionContext, Depends(get_session)]
OptionalSession = Annotated[Optional[SessionContext], Depends(get_optional_session)]
AdminSession = Annotated[SessionContext, Depends(require_admin)]
