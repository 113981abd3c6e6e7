"""Unit tests for ConsistencyEngine cascades.

Covers cascade completeness for content deletion, full identity erasure,
community deletion, topic publication, and partial-failure handling with a
backend that refuses writes to chosen slots.
"""

from __future__ import annotations

import pytest

from starlight.core.backends import InMemoryBackend
from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.consistency import ConsistencyEngine
from starlight.core.event_bus import EventBus, Topic
from starlight.core.exceptions import PartialCascadeFailure, StorageError
from starlight.core.schemas import Identity, ProfileDetails
from tests.factories import (
    BlockEntryFactory,
    CommunityFactory,
    ContentItemFactory,
    LedgerEntryFactory,
    PlaylistFactory,
    ReportFactory,
    ShortsCampaignFactory,
    SkippableCampaignFactory,
)

ANN = "a@x.com"
BOB = "b@x.com"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RefusingBackend(InMemoryBackend):
    """In-memory backend whose writes to ``refused`` keys fail.

    Reads of ``unreadable`` keys fail too.
    """

    def __init__(self) -> None:
        super().__init__()
        self.refused: set[str] = set()
        self.unreadable: set[str] = set()

    def get(self, key: str) -> str | None:
        if key in self.unreadable:
            raise StorageError("io error", slot=key)
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        if key in self.refused:
            raise StorageError("disk full", slot=key)
        super().set(key, value)

    def delete(self, key: str) -> None:
        if key in self.refused:
            raise StorageError("disk full", slot=key)
        super().delete(key)


def _record_topics(bus: EventBus) -> list[Topic]:
    published: list[Topic] = []
    for topic in Topic:
        bus.subscribe(topic, lambda t=topic: published.append(t))
    return published


def _ids(records) -> list[str]:
    return [r.id for r in records]


# ---------------------------------------------------------------------------
# Content item deletion
# ---------------------------------------------------------------------------


class TestDeleteContentItem:
    def test_removes_every_reference(self, store: CollectionStore, engine: ConsistencyEngine) -> None:
        v1, v2 = ContentItemFactory.build_batch(2)
        store.replace(Collection.CONTENT_ITEMS, [v1, v2])
        for owner in (ANN, BOB):
            store.replace(Collection.HISTORY, [v1, v2], owner=owner)
        store.replace(Collection.LIKED, [v1], owner=ANN)
        store.replace(Collection.WATCH_LATER, [v2, v1], owner=BOB)
        store.replace(
            Collection.PLAYLISTS,
            [PlaylistFactory.build(videos=[v1, v2]), PlaylistFactory.build(videos=[v1])],
        )
        store.replace(Collection.REPORTS, [ReportFactory.build(video=v1), ReportFactory.build(video=v2)])

        summary = engine.delete_content_item(v1.id)

        assert _ids(store.get(Collection.CONTENT_ITEMS)) == [v2.id]
        for owner in (ANN, BOB):
            assert v1.id not in _ids(store.get(Collection.HISTORY, owner=owner))
        assert store.get(Collection.LIKED, owner=ANN) == []
        assert _ids(store.get(Collection.WATCH_LATER, owner=BOB)) == [v2.id]
        assert [_ids(p.videos) for p in store.get(Collection.PLAYLISTS)] == [[v2.id], []]
        assert [r.video.id for r in store.get(Collection.REPORTS)] == [v2.id]
        assert summary.primary_deleted
        assert summary.removed["playlists"] == 2
        assert summary.removed["reports"] == 1

    def test_unknown_id_is_noop(self, store: CollectionStore, engine: ConsistencyEngine) -> None:
        item = ContentItemFactory.build()
        store.put(Collection.CONTENT_ITEMS, item)

        summary = engine.delete_content_item("missing")

        assert summary.total_removed == 0
        assert store.get(Collection.CONTENT_ITEMS) == [item]

    def test_publishes_content_and_playlist_topics(self, bus: EventBus, engine: ConsistencyEngine) -> None:
        published = _record_topics(bus)

        engine.delete_content_item("anything")

        assert published == [Topic.CONTENT_CHANGED, Topic.PLAYLISTS_CHANGED]

    def test_playlists_not_rewritten_when_unaffected(
        self, backend: InMemoryBackend, store: CollectionStore, engine: ConsistencyEngine
    ) -> None:
        store.replace(Collection.PLAYLISTS, [PlaylistFactory.build()])
        before = backend.get("starlight:playlists")

        engine.delete_content_item("unrelated")

        assert backend.get("starlight:playlists") == before


# ---------------------------------------------------------------------------
# Identity erasure
# ---------------------------------------------------------------------------


class TestDeleteIdentity:
    def test_legacy_name_owned_item_and_foreign_report(
        self, store: CollectionStore, engine: ConsistencyEngine
    ) -> None:
        store.replace(
            Collection.ALL_IDENTITIES,
            [Identity(email=ANN, name="Ann"), Identity(email=BOB, name="Bob")],
        )
        v1 = ContentItemFactory.build(id="v1", uploader_name="Ann", uploader_email=None)
        store.put(Collection.CONTENT_ITEMS, v1)
        store.put(Collection.REPORTS, ReportFactory.build(video=v1, reporter_email=BOB))

        engine.delete_identity(ANN, "Ann")

        assert store.get(Collection.CONTENT_ITEMS) == []
        assert store.get(Collection.REPORTS) == []
        assert [i.email for i in store.get(Collection.ALL_IDENTITIES)] == [BOB]

    def test_erases_every_collection(
        self, backend: InMemoryBackend, store: CollectionStore, engine: ConsistencyEngine
    ) -> None:
        ann = Identity(email=ANN, name="Ann")
        bob = Identity(email=BOB, name="Bob")
        store.replace(Collection.ALL_IDENTITIES, [ann, bob])
        store.put_single(Collection.ACTIVE_IDENTITY, ann)

        ann_item = ContentItemFactory.build(uploader_email=ANN, uploader_name="Ann")
        bob_item = ContentItemFactory.build(uploader_email=BOB, uploader_name="Bob")
        store.replace(Collection.CONTENT_ITEMS, [ann_item, bob_item])

        for collection in (Collection.HISTORY, Collection.LIKED, Collection.WATCH_LATER):
            store.replace(collection, [bob_item], owner=ANN)
            store.replace(collection, [ann_item, bob_item], owner=BOB)
        store.replace(Collection.SUBSCRIPTIONS, ["Ann's Corner", "Bob TV"], owner=ANN)
        store.replace(Collection.SUBSCRIPTIONS, ["Ann's Corner", "Bob TV"], owner=BOB)

        store.replace(
            Collection.PLAYLISTS,
            [
                PlaylistFactory.build(id="p-ann", owner_email=ANN, videos=[bob_item]),
                PlaylistFactory.build(id="p-bob", owner_email=BOB, videos=[ann_item, bob_item]),
            ],
        )
        store.replace(
            Collection.REPORTS,
            [
                ReportFactory.build(id="r-by-ann", video=bob_item, reporter_email=ANN),
                ReportFactory.build(id="r-on-ann", video=ann_item, reporter_email=BOB),
                ReportFactory.build(id="r-other", video=bob_item, reporter_email=BOB),
            ],
        )
        store.replace(
            Collection.AD_CAMPAIGNS,
            [
                SkippableCampaignFactory.build(id="c-ann", owner_email=ANN),
                ShortsCampaignFactory.build(id="c-legacy", owner_email=None, owner_name="Ann"),
                SkippableCampaignFactory.build(id="c-bob", owner_email=BOB, owner_name="Bob"),
            ],
        )
        store.put_single(Collection.CREDIT_LEDGER, LedgerEntryFactory.build(owner_email=ANN), owner=ANN)
        store.replace(
            Collection.COMMUNITIES,
            [
                CommunityFactory.build(id="comm-ann", name="Ann's Corner", owner_email=ANN),
                CommunityFactory.build(id="comm-bob", name="Bob TV", owner_email=BOB),
            ],
        )
        store.put_mapping_entry(Collection.PROFILE_DETAILS, ANN, ProfileDetails(city="Aarhus"))
        store.put_mapping_entry(Collection.PROFILE_DETAILS, BOB, ProfileDetails(city="Odense"))
        store.put(Collection.BLOCKED_IDENTITIES, BlockEntryFactory.build(email=ANN))

        summary = engine.delete_identity(ANN, "Ann")

        assert summary.primary_deleted
        assert [i.email for i in store.get(Collection.ALL_IDENTITIES)] == [BOB]
        assert store.get_single(Collection.ACTIVE_IDENTITY) is None
        assert _ids(store.get(Collection.CONTENT_ITEMS)) == [bob_item.id]
        for collection in (Collection.HISTORY, Collection.LIKED, Collection.WATCH_LATER):
            assert backend.get(store.slot_name(collection, ANN)) is None
            assert _ids(store.get(collection, owner=BOB)) == [bob_item.id]
        assert backend.get(store.slot_name(Collection.SUBSCRIPTIONS, ANN)) is None
        assert store.get(Collection.SUBSCRIPTIONS, owner=BOB) == ["Bob TV"]
        assert [(p.id, _ids(p.videos)) for p in store.get(Collection.PLAYLISTS)] == [
            ("p-bob", [bob_item.id])
        ]
        assert _ids(store.get(Collection.REPORTS)) == ["r-other"]
        assert _ids(store.get(Collection.AD_CAMPAIGNS)) == ["c-bob"]
        assert store.get_single(Collection.CREDIT_LEDGER, owner=ANN) is None
        assert summary.removed[f"credit-ledger:{ANN}"] == 1
        assert _ids(store.get(Collection.COMMUNITIES)) == ["comm-bob"]
        assert list(store.get_mapping(Collection.PROFILE_DETAILS)) == [BOB]
        assert store.get(Collection.BLOCKED_IDENTITIES) == []

    def test_keeps_other_active_identity(self, store: CollectionStore, engine: ConsistencyEngine) -> None:
        bob = Identity(email=BOB, name="Bob")
        store.replace(Collection.ALL_IDENTITIES, [Identity(email=ANN, name="Ann"), bob])
        store.put_single(Collection.ACTIVE_IDENTITY, bob)

        engine.delete_identity(ANN, "Ann")

        assert store.get_single(Collection.ACTIVE_IDENTITY) == bob

    def test_name_does_not_override_email_ownership(
        self, store: CollectionStore, engine: ConsistencyEngine
    ) -> None:
        namesake = ContentItemFactory.build(uploader_name="Ann", uploader_email="other@x.com")
        store.put(Collection.CONTENT_ITEMS, namesake)

        engine.delete_identity(ANN, "Ann")

        assert store.get(Collection.CONTENT_ITEMS) == [namesake]

    def test_publishes_all_topics(self, bus: EventBus, engine: ConsistencyEngine) -> None:
        published = _record_topics(bus)

        engine.delete_identity(ANN, "Ann")

        assert published == [
            Topic.CONTENT_CHANGED,
            Topic.SUBSCRIPTIONS_CHANGED,
            Topic.PLAYLISTS_CHANGED,
        ]


# ---------------------------------------------------------------------------
# Community deletion
# ---------------------------------------------------------------------------


class TestDeleteCommunity:
    def test_removes_name_from_all_subscriptions(
        self, store: CollectionStore, engine: ConsistencyEngine, bus: EventBus
    ) -> None:
        published = _record_topics(bus)
        store.replace(
            Collection.COMMUNITIES,
            [CommunityFactory.build(id="c1", name="Music"), CommunityFactory.build(id="c2", name="Gaming")],
        )
        store.replace(Collection.SUBSCRIPTIONS, ["Music", "Gaming"], owner=ANN)
        store.replace(Collection.SUBSCRIPTIONS, ["Music"], owner=BOB)

        summary = engine.delete_community("c1")

        assert summary.primary_deleted
        assert store.get(Collection.SUBSCRIPTIONS, owner=ANN) == ["Gaming"]
        assert store.get(Collection.SUBSCRIPTIONS, owner=BOB) == []
        assert _ids(store.get(Collection.COMMUNITIES)) == ["c2"]
        assert published == [Topic.SUBSCRIPTIONS_CHANGED]

    def test_unknown_community_is_noop(self, engine: ConsistencyEngine, bus: EventBus) -> None:
        published = _record_topics(bus)

        summary = engine.delete_community("missing")

        assert not summary.primary_deleted
        assert published == []


# ---------------------------------------------------------------------------
# Partial failures
# ---------------------------------------------------------------------------


class TestPartialFailure:
    @pytest.fixture
    def refusing(self) -> RefusingBackend:
        return RefusingBackend()

    @pytest.fixture
    def failing_store(self, refusing: RefusingBackend) -> CollectionStore:
        return CollectionStore(refusing, key_prefix="starlight:")

    def test_content_item_kept_when_report_purge_fails(
        self, refusing: RefusingBackend, failing_store: CollectionStore
    ) -> None:
        bus = EventBus()
        published = _record_topics(bus)
        engine = ConsistencyEngine(failing_store, bus)
        v1 = ContentItemFactory.build()
        failing_store.put(Collection.CONTENT_ITEMS, v1)
        failing_store.put(Collection.HISTORY, v1, owner=ANN)
        failing_store.put(Collection.REPORTS, ReportFactory.build(video=v1))
        refusing.refused.add("starlight:reports")

        with pytest.raises(PartialCascadeFailure) as exc_info:
            engine.delete_content_item(v1.id)

        failure = exc_info.value
        assert [f.step for f in failure.failures] == ["reports"]
        assert failure.primary_deleted is False
        assert failing_store.get(Collection.CONTENT_ITEMS) == [v1]
        # Steps that could run still ran, and views were told.
        assert failing_store.get(Collection.HISTORY, owner=ANN) == []
        assert published == [Topic.CONTENT_CHANGED, Topic.PLAYLISTS_CHANGED]

    def test_rerun_after_recovery_completes(
        self, refusing: RefusingBackend, failing_store: CollectionStore
    ) -> None:
        engine = ConsistencyEngine(failing_store, EventBus())
        v1 = ContentItemFactory.build()
        failing_store.put(Collection.CONTENT_ITEMS, v1)
        failing_store.put(Collection.REPORTS, ReportFactory.build(video=v1))
        refusing.refused.add("starlight:reports")
        with pytest.raises(PartialCascadeFailure):
            engine.delete_content_item(v1.id)

        refusing.refused.clear()
        summary = engine.delete_content_item(v1.id)

        assert summary.primary_deleted
        assert failing_store.get(Collection.CONTENT_ITEMS) == []
        assert failing_store.get(Collection.REPORTS) == []

    def test_identity_kept_when_a_step_fails(
        self, refusing: RefusingBackend, failing_store: CollectionStore
    ) -> None:
        engine = ConsistencyEngine(failing_store, EventBus())
        ann = Identity(email=ANN, name="Ann")
        failing_store.put(Collection.ALL_IDENTITIES, ann)
        failing_store.put(Collection.CONTENT_ITEMS, ContentItemFactory.build(uploader_email=ANN))
        failing_store.put(Collection.LIKED, ContentItemFactory.build(), owner=ANN)
        refusing.refused.add("starlight:liked:" + ANN)

        with pytest.raises(PartialCascadeFailure) as exc_info:
            engine.delete_identity(ANN, "Ann")

        assert [f.step for f in exc_info.value.failures] == [f"liked:{ANN}"]
        assert failing_store.get(Collection.ALL_IDENTITIES) == [ann]
        assert len(failing_store.get(Collection.CONTENT_ITEMS)) == 1

    def test_community_kept_when_subscription_purge_fails(
        self, refusing: RefusingBackend, failing_store: CollectionStore
    ) -> None:
        engine = ConsistencyEngine(failing_store, EventBus())
        failing_store.put(Collection.COMMUNITIES, CommunityFactory.build(id="c1", name="Music"))
        failing_store.replace(Collection.SUBSCRIPTIONS, ["Music"], owner=ANN)
        refusing.refused.add(f"starlight:subscriptions:{ANN}")

        with pytest.raises(PartialCascadeFailure) as exc_info:
            engine.delete_community("c1")

        assert exc_info.value.primary_deleted is False
        assert _ids(failing_store.get(Collection.COMMUNITIES)) == ["c1"]

    def test_identity_steps_continue_when_communities_unreadable(
        self, refusing: RefusingBackend, failing_store: CollectionStore
    ) -> None:
        bus = EventBus()
        published = _record_topics(bus)
        engine = ConsistencyEngine(failing_store, bus)
        ann = Identity(email=ANN, name="Ann")
        failing_store.put(Collection.ALL_IDENTITIES, ann)
        failing_store.put(Collection.REPORTS, ReportFactory.build(reporter_email=ANN))
        failing_store.put_mapping_entry(Collection.PROFILE_DETAILS, ANN, ProfileDetails(city="Aarhus"))
        failing_store.put(Collection.BLOCKED_IDENTITIES, BlockEntryFactory.build(email=ANN))
        refusing.unreadable.add("starlight:communities")

        with pytest.raises(PartialCascadeFailure) as exc_info:
            engine.delete_identity(ANN, "Ann")

        assert [f.step for f in exc_info.value.failures] == ["communities"]
        assert exc_info.value.primary_deleted is False
        assert failing_store.get(Collection.REPORTS) == []
        assert failing_store.get_mapping(Collection.PROFILE_DETAILS) == {}
        assert failing_store.get(Collection.BLOCKED_IDENTITIES) == []
        assert failing_store.get(Collection.ALL_IDENTITIES) == [ann]
        assert set(published) == set(Topic)
