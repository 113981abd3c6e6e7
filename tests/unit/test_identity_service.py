"""Unit tests for IdentityService: login, restore, premium and deletion."""

from __future__ import annotations

from datetime import timedelta

import pytest

from starlight.core.access_guard import AccessGuard
from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.credit_ledger import CreditLedger
from starlight.core.exceptions import (
    AdminRequiredError,
    NotAuthenticatedError,
    NotFoundError,
    PermanentlyBlockedError,
    TemporarilyBlockedError,
)
from starlight.core.identity_service import IdentityService, SessionContext
from starlight.core.schemas import BlockType, IdentityAssertion
from tests.conftest import ADMIN_EMAIL, login
from tests.factories import ContentItemFactory


class TestLogin:
    def test_new_identity_is_stored_and_active(
        self, identities: IdentityService, store: CollectionStore
    ) -> None:
        session = login(identities, "Ann", "ann@example.com")

        assert session.email == "ann@example.com"
        assert not session.is_admin
        stored = store.find(Collection.ALL_IDENTITIES, "ann@example.com")
        assert stored.name == "Ann"
        assert stored.joined_date is not None
        assert store.get_single(Collection.ACTIVE_IDENTITY) == stored

    def test_existing_identity_keeps_joined_date_and_premium(
        self, identities: IdentityService, store: CollectionStore
    ) -> None:
        first = login(identities, "Ann", "ann@example.com", premium=True)

        second = login(identities, "Ann B.", "ann@example.com", premium=False)

        assert second.name == "Ann B."
        assert second.is_premium
        assert second.identity.joined_date == first.identity.joined_date
        assert len(store.get(Collection.ALL_IDENTITIES)) == 1

    def test_premium_login_creates_ledger(
        self, identities: IdentityService, ledger: CreditLedger
    ) -> None:
        login(identities, "Ann", "ann@example.com", premium=True)

        entry = ledger.get("ann@example.com")
        assert (entry.skippable, entry.unskippable) == (5, 5)

    def test_regular_login_creates_no_ledger(
        self, identities: IdentityService, ledger: CreditLedger
    ) -> None:
        login(identities, "Ann", "ann@example.com")

        assert ledger.get("ann@example.com") is None

    def test_admin_is_recognised_and_premium(self, admin: SessionContext, ledger: CreditLedger) -> None:
        assert admin.is_admin
        assert admin.is_premium
        assert ledger.get(ADMIN_EMAIL) is not None

    def test_permanently_blocked_login_writes_nothing(
        self, identities: IdentityService, guard: AccessGuard, store: CollectionStore
    ) -> None:
        guard.block("ann@example.com", BlockType.PERMANENT)

        with pytest.raises(PermanentlyBlockedError):
            login(identities, "Ann", "ann@example.com")

        assert store.get(Collection.ALL_IDENTITIES) == []
        assert store.get_single(Collection.ACTIVE_IDENTITY) is None

    def test_temporarily_blocked_login_reports_until(
        self, identities: IdentityService, guard: AccessGuard, clock
    ) -> None:
        guard.block("ann@example.com", BlockType.TEMPORARY, duration=timedelta(days=3))

        with pytest.raises(TemporarilyBlockedError) as exc_info:
            login(identities, "Ann", "ann@example.com")

        assert exc_info.value.until == clock.now + timedelta(days=3)

    def test_invalid_email_rejected(self) -> None:
        with pytest.raises(ValueError):
            IdentityAssertion(name="Ann", email="not-an-email")


class TestRestore:
    def test_nobody_remembered(self, identities: IdentityService) -> None:
        assert identities.restore() is None

    def test_restores_remembered_identity(self, identities: IdentityService, alice: SessionContext) -> None:
        restored = identities.restore()

        assert restored is not None
        assert restored.email == alice.email

    def test_blocked_since_last_session(
        self,
        identities: IdentityService,
        guard: AccessGuard,
        store: CollectionStore,
        alice: SessionContext,
    ) -> None:
        guard.block(alice.email, BlockType.PERMANENT)

        assert identities.restore() is None
        assert store.get_single(Collection.ACTIVE_IDENTITY) is None

    def test_corrupt_pointer_is_cleared(self, identities: IdentityService, backend) -> None:
        backend.set("starlight:active-identity", "{broken")

        assert identities.restore() is None
        assert backend.get("starlight:active-identity") is None


class TestSessions:
    def test_logout_clears_pointer(
        self, identities: IdentityService, store: CollectionStore, alice: SessionContext
    ) -> None:
        identities.logout()

        assert store.get_single(Collection.ACTIVE_IDENTITY) is None
        assert store.find(Collection.ALL_IDENTITIES, alice.email) is not None

    def test_session_for_known(self, identities: IdentityService, alice: SessionContext) -> None:
        assert identities.session_for(alice.email) == alice

    def test_session_for_unknown(self, identities: IdentityService) -> None:
        with pytest.raises(NotAuthenticatedError):
            identities.session_for("ghost@example.com")


class TestPremium:
    def test_upgrade_grants_fresh_credits(
        self, identities: IdentityService, ledger: CreditLedger, alice: SessionContext
    ) -> None:
        ledger.ensure(alice.email)
        ledger.decrement(alice.email, "skippable")

        upgraded = identities.upgrade_to_premium(alice)

        assert upgraded.is_premium
        assert ledger.get(alice.email).skippable == 5

    def test_upgrade_refreshes_active_identity(
        self, identities: IdentityService, store: CollectionStore, alice: SessionContext
    ) -> None:
        identities.upgrade_to_premium(alice)

        assert store.get_single(Collection.ACTIVE_IDENTITY).is_premium

    def test_admin_set_premium_keeps_existing_ledger(
        self,
        identities: IdentityService,
        ledger: CreditLedger,
        admin: SessionContext,
        bob: SessionContext,
    ) -> None:
        ledger.ensure(bob.email)
        ledger.decrement(bob.email, "unskippable")

        identity = identities.set_premium(admin, bob.email, True)

        assert identity.is_premium
        assert ledger.get(bob.email).unskippable == 4

    def test_set_premium_requires_admin(
        self, identities: IdentityService, alice: SessionContext, bob: SessionContext
    ) -> None:
        with pytest.raises(AdminRequiredError):
            identities.set_premium(alice, bob.email, True)

    def test_set_premium_unknown_identity(self, identities: IdentityService, admin: SessionContext) -> None:
        with pytest.raises(NotFoundError):
            identities.set_premium(admin, "ghost@example.com", True)


class TestListingAndDeletion:
    def test_list_sorted_by_name(
        self, identities: IdentityService, bob: SessionContext, alice: SessionContext
    ) -> None:
        assert [i.name for i in identities.list_identities()] == ["Alice", "Bob"]

    def test_delete_account_erases_identity_and_content(
        self, identities: IdentityService, store: CollectionStore, alice: SessionContext
    ) -> None:
        store.put(Collection.CONTENT_ITEMS, ContentItemFactory.build(uploader_email=alice.email))

        summary = identities.delete_account(alice)

        assert summary.primary_deleted
        assert store.get(Collection.CONTENT_ITEMS) == []
        assert store.find(Collection.ALL_IDENTITIES, alice.email) is None
        assert store.get_single(Collection.ACTIVE_IDENTITY) is None

    def test_admin_delete_identity(
        self,
        identities: IdentityService,
        store: CollectionStore,
        admin: SessionContext,
        bob: SessionContext,
    ) -> None:
        identities.delete_identity(admin, bob.email)

        assert store.find(Collection.ALL_IDENTITIES, bob.email) is None

    def test_admin_delete_unknown(self, identities: IdentityService, admin: SessionContext) -> None:
        with pytest.raises(NotFoundError):
            identities.delete_identity(admin, "ghost@example.com")

    def test_delete_identity_requires_admin(
        self, identities: IdentityService, alice: SessionContext, bob: SessionContext
    ) -> None:
        with pytest.raises(AdminRequiredError):
            identities.delete_identity(alice, bob.email)
