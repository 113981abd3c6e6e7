"""Shared pytest fixtures for Starlight tests.

Fixture summary
---------------
backend         — Fresh InMemoryBackend per test.
store           — CollectionStore over ``backend`` with the default prefix.
bus             — EventBus owned by the test.
clock           — Controllable clock (``clock.advance(days=1)``).
engine / ledger / guard — Core components over ``store``.
identities / content / communities / campaigns — Application services.
alice / bob / admin — Logged-in SessionContext objects.
client          — httpx.AsyncClient against a fresh FastAPI app.

Everything runs against the in-memory backend; no external infrastructure
is required.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set before any application module is imported so the module-level app in
# starlight.api.main is built against the in-memory backend.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "STARLIGHT_STORAGE_URL": "memory://",
    "STARLIGHT_ADMIN_EMAIL": "admin@starlight.app",
    "STARLIGHT_LOG_LEVEL": "WARNING",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from starlight.api.main import create_app  # noqa: E402
from starlight.config.settings import Settings, get_settings  # noqa: E402
from starlight.core.access_guard import AccessGuard  # noqa: E402
from starlight.core.backends import InMemoryBackend  # noqa: E402
from starlight.core.campaign_service import CampaignService  # noqa: E402
from starlight.core.collection_store import CollectionStore  # noqa: E402
from starlight.core.community_service import CommunityService  # noqa: E402
from starlight.core.consistency import ConsistencyEngine  # noqa: E402
from starlight.core.content_service import ContentService  # noqa: E402
from starlight.core.credit_ledger import CreditLedger  # noqa: E402
from starlight.core.event_bus import EventBus  # noqa: E402
from starlight.core.identity_service import IdentityService, SessionContext  # noqa: E402
from starlight.core.schemas import IdentityAssertion  # noqa: E402

get_settings.cache_clear()

ADMIN_EMAIL = "admin@starlight.app"
KEY_PREFIX = "starlight:"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Core components
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> CollectionStore:
    return CollectionStore(backend, key_prefix=KEY_PREFIX)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def ledger(store: CollectionStore) -> CreditLedger:
    return CreditLedger(store)


@pytest.fixture
def engine(store: CollectionStore, bus: EventBus, ledger: CreditLedger) -> ConsistencyEngine:
    return ConsistencyEngine(store, bus, ledger)


@pytest.fixture
def guard(store: CollectionStore, clock: FrozenClock) -> AccessGuard:
    return AccessGuard(store, clock=clock)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def identities(
    store: CollectionStore,
    guard: AccessGuard,
    ledger: CreditLedger,
    engine: ConsistencyEngine,
) -> IdentityService:
    return IdentityService(store, guard, ledger, engine, admin_email=ADMIN_EMAIL)


@pytest.fixture
def content(store: CollectionStore, bus: EventBus, engine: ConsistencyEngine) -> ContentService:
    return ContentService(store, bus, engine)


@pytest.fixture
def communities(
    store: CollectionStore, bus: EventBus, engine: ConsistencyEngine
) -> CommunityService:
    return CommunityService(store, bus, engine)


@pytest.fixture
def campaigns(store: CollectionStore, ledger: CreditLedger) -> CampaignService:
    return CampaignService(store, ledger)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def login(identities: IdentityService, name: str, email: str, *, premium: bool = False) -> SessionContext:
    """Log an identity in through the real login path."""
    return identities.login(IdentityAssertion(name=name, email=email, is_premium=premium))


@pytest.fixture
def alice(identities: IdentityService) -> SessionContext:
    return login(identities, "Alice", "alice@example.com")


@pytest.fixture
def bob(identities: IdentityService) -> SessionContext:
    return login(identities, "Bob", "bob@example.com")


@pytest.fixture
def admin(identities: IdentityService) -> SessionContext:
    return login(identities, "Admin", ADMIN_EMAIL)


# ---------------------------------------------------------------------------
# FastAPI test client
# ---------------------------------------------------------------------------


@pytest.fixture
def api_backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest_asyncio.fixture
async def client(api_backend: InMemoryBackend) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx.AsyncClient against an app built on ``api_backend``.

    Yields:
        :class:`httpx.AsyncClient` configured for the test app.
    """
    settings = Settings(storage_url="memory://", admin_email=ADMIN_EMAIL, log_level="WARNING")
    app = create_app(settings=settings, backend=api_backend)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def headers_for(email: str) -> dict[str, str]:
    """Session header identifying *email* to the API."""
    return {"X-Starlight-Identity": email}


async def api_login(
    client: AsyncClient, name: str, email: str, *, premium: bool = False
) -> dict[str, str]:
    """Log in over HTTP and return the headers for subsequent calls."""
    response = await client.post(
        "/identities/login",
        json={"name": name, "email": email, "isPremium": premium},
    )
    assert response.status_code == 200, (
        f"Login failed for {email!r}: {response.status_code} {response.text}"
    )
    return headers_for(email)
