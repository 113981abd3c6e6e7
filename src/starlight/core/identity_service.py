"""Login, logout, premium upgrade and account deletion.

The active identity is never read from ambient state: ``login`` and
``restore`` return a :class:`SessionContext` that callers pass explicitly to
every operation acting on behalf of the identity.  The ``active-identity``
slot only remembers who was logged in between process restarts.

Login sequence::

    assertion ──► AccessGuard.check ──► upsert all-identities
              ──► write active-identity ──► CreditLedger.ensure (premium)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from starlight.core.access_guard import AccessGuard
from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.consistency import CascadeSummary, ConsistencyEngine
from starlight.core.credit_ledger import CreditLedger
from starlight.core.exceptions import (
    AdminRequiredError,
    BlockedError,
    NotAuthenticatedError,
    NotFoundError,
)
from starlight.core.schemas import Identity, IdentityAssertion, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """The identity an operation is performed for.

    Attributes:
        identity: The logged-in identity record.
        is_admin: Whether the identity is the configured administrator.
    """

    identity: Identity
    is_admin: bool = False

    @property
    def email(self) -> str:
        return self.identity.email

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def is_premium(self) -> bool:
        return self.identity.is_premium or self.is_admin

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AdminRequiredError(f"{self.email} is not an administrator")


class IdentityService:
    """Manages identities and sessions.

    Args:
        store: The collection store.
        guard: Access guard consulted on every login.
        ledger: Credit ledger initialised for premium identities.
        engine: Consistency engine used for account deletion.
        admin_email: Identity treated as administrator.
    """

    def __init__(
        self,
        store: CollectionStore,
        guard: AccessGuard,
        ledger: CreditLedger,
        engine: ConsistencyEngine,
        admin_email: str,
    ) -> None:
        self.store = store
        self.guard = guard
        self.ledger = ledger
        self.engine = engine
        self.admin_email = admin_email

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, assertion: IdentityAssertion) -> SessionContext:
        """Start a session for the asserted identity.

        An existing identity keeps its record but takes the name and avatar
        from the assertion; premium is kept if either side has it.  A new
        identity gets ``joined_date`` set to now.

        Raises:
            PermanentlyBlockedError / TemporarilyBlockedError: The access
                guard refused the identity; no session state is written.
        """
        email = str(assertion.email)
        self.guard.check(email)

        existing = self.store.find(Collection.ALL_IDENTITIES, email)
        if existing is not None:
            identity = existing.model_copy(
                update={
                    "name": assertion.name,
                    "avatar": assertion.avatar,
                    "is_premium": assertion.is_premium or existing.is_premium,
                }
            )
        else:
            identity = Identity(
                email=email,
                name=assertion.name,
                avatar=assertion.avatar,
                is_premium=assertion.is_premium,
                joined_date=utcnow(),
            )
        self.store.put(Collection.ALL_IDENTITIES, identity)
        self.store.put_single(Collection.ACTIVE_IDENTITY, identity)

        session = self._session_for(identity)
        if session.is_premium:
            self.ledger.ensure(email)
        logger.info(
            "identity: login",
            extra={"email": email, "new": existing is None, "premium": session.is_premium},
        )
        return session

    def restore(self) -> SessionContext | None:
        """Re-run login for the identity remembered in ``active-identity``.

        Returns ``None`` when nobody is remembered, the slot is unreadable,
        or the remembered identity has since been blocked (the pointer is
        cleared in the last two cases).
        """
        active = self.store.get_single(Collection.ACTIVE_IDENTITY)
        if active is None:
            self.store.clear_single(Collection.ACTIVE_IDENTITY)
            return None
        try:
            return self.login(
                IdentityAssertion(
                    name=active.name,
                    email=active.email,
                    avatar=active.avatar,
                    is_premium=active.is_premium,
                )
            )
        except BlockedError:
            self.store.clear_single(Collection.ACTIVE_IDENTITY)
            return None

    def logout(self) -> None:
        self.store.clear_single(Collection.ACTIVE_IDENTITY)

    def session_for(self, email: str) -> SessionContext:
        """Build a session for a known identity without re-running login.

        Raises:
            NotAuthenticatedError: The identity is unknown.
        """
        identity = self.store.find(Collection.ALL_IDENTITIES, email)
        if identity is None:
            raise NotAuthenticatedError(f"unknown identity: {email}")
        return self._session_for(identity)

    # ------------------------------------------------------------------
    # Premium
    # ------------------------------------------------------------------

    def upgrade_to_premium(self, session: SessionContext) -> SessionContext:
        """Mark the session's identity premium and grant fresh credits."""
        identity = self._set_premium(session.email, True)
        self.ledger.grant_on_upgrade(session.email)
        return self._session_for(identity)

    def set_premium(self, admin: SessionContext, email: str, is_premium: bool) -> Identity:
        """Administrator toggle of another identity's premium flag.

        Turning premium on ensures a ledger entry exists without resetting
        an existing one.
        """
        admin.require_admin()
        identity = self._set_premium(email, is_premium)
        if is_premium:
            self.ledger.ensure(email)
        return identity

    def _set_premium(self, email: str, is_premium: bool) -> Identity:
        identity = self.store.update(
            Collection.ALL_IDENTITIES,
            email,
            lambda i: i.model_copy(update={"is_premium": is_premium}),
        )
        active = self.store.get_single(Collection.ACTIVE_IDENTITY)
        if active is not None and active.email == email:
            self.store.put_single(Collection.ACTIVE_IDENTITY, identity)
        logger.info("identity: premium changed", extra={"email": email, "premium": is_premium})
        return identity

    # ------------------------------------------------------------------
    # Listing & deletion
    # ------------------------------------------------------------------

    def list_identities(self) -> list[Identity]:
        return sorted(self.store.get(Collection.ALL_IDENTITIES), key=lambda i: i.name.lower())

    def delete_account(self, session: SessionContext) -> CascadeSummary:
        """Erase the session's own identity (and log it out)."""
        return self.engine.delete_identity(session.email, session.name)

    def delete_identity(self, admin: SessionContext, email: str) -> CascadeSummary:
        """Administrator erasure of another identity.

        Raises:
            NotFoundError: The identity is unknown.
        """
        admin.require_admin()
        identity = self.store.find(Collection.ALL_IDENTITIES, email)
        if identity is None:
            raise NotFoundError(Collection.ALL_IDENTITIES.value, email)
        return self.engine.delete_identity(identity.email, identity.name)

    def _session_for(self, identity: Identity) -> SessionContext:
        return SessionContext(identity=identity, is_admin=identity.email == self.admin_email)
