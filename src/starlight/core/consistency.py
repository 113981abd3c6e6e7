"""Cascade rules that keep dependent collections valid after a deletion.

Three primary entities own dependents:

- **Content item** → snapshots in every identity's history / liked /
  watch-later lists, snapshots inside playlists, and reports against it.
- **Identity** → their personal lists and subscriptions, their playlists,
  snapshots of their content anywhere, reports they filed and reports
  against their content, their ad campaigns, their credit ledger entry,
  their communities, their profile details, their block entry, their
  content items, and finally the identity record itself.
- **Community** → its name in every identity's subscriptions.

Ordering
--------
Dependent sets are computed first, dependents are removed next, and the
primary record is removed last.  Each step is a separate whole-collection
write, so a crash between steps leaves the primary record discoverable
rather than leaving dependents that point at nothing.

Failures
--------
A step whose write fails with :class:`~starlight.core.exceptions.StorageError`
is recorded and the remaining dependent steps still run.  If any step failed
the primary record is *kept*, the topics for whatever did change are still
published, and :class:`~starlight.core.exceptions.PartialCascadeFailure` is
raised with every failure.  Nothing is retried automatically; re-running the
same deletion is safe because every step is idempotent.

Usage::

    engine = ConsistencyEngine(store, bus)
    summary = engine.delete_content_item("v1")
    summary.removed  # {"history:ann@example.com": 1, "playlists": 2, ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from starlight.core.collection_store import (
    SNAPSHOT_LISTS,
    Collection,
    CollectionStore,
)
from starlight.core.credit_ledger import CreditLedger
from starlight.core.event_bus import EventBus, Topic
from starlight.core.exceptions import (
    CascadeStepFailure,
    PartialCascadeFailure,
    StorageError,
)

logger = logging.getLogger(__name__)

_PERSONAL_LISTS: tuple[Collection, ...] = SNAPSHOT_LISTS + (Collection.SUBSCRIPTIONS,)


@dataclass
class CascadeSummary:
    """What a cascade did.

    Attributes:
        operation: Cascade name (``"delete_content_item"`` …).
        target: Identifier of the primary record.
        removed: Records removed per step, in execution order.
        failures: Steps whose write failed.
        primary_deleted: Whether the primary record was removed.
    """

    operation: str
    target: str
    removed: dict[str, int] = field(default_factory=dict)
    failures: list[CascadeStepFailure] = field(default_factory=list)
    primary_deleted: bool = False

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())


class ConsistencyEngine:
    """Runs cascades over the collection store and publishes change topics.

    Args:
        store: The collection store.
        bus: Bus on which change topics are published after a cascade.
        ledger: Ledger whose entries are erased with their identity; one
            over *store* is created when omitted.
    """

    def __init__(
        self,
        store: CollectionStore,
        bus: EventBus,
        ledger: CreditLedger | None = None,
    ) -> None:
        self.store = store
        self.bus = bus
        self.ledger = ledger if ledger is not None else CreditLedger(store)

    # ------------------------------------------------------------------
    # Content item
    # ------------------------------------------------------------------

    def delete_content_item(self, content_id: str) -> CascadeSummary:
        """Delete a content item and everything that embeds or reports it.

        Steps: (1) every identity's history / liked / watch-later,
        (2) playlists, (3) reports, (4) the content item itself.

        Raises:
            PartialCascadeFailure: A step failed; the content item was kept.
        """
        summary = CascadeSummary("delete_content_item", content_id)
        ids = frozenset({content_id})

        self._purge_snapshot_lists(summary, ids)
        self._run(summary, "playlists", lambda: self._purge_playlists(ids))
        self._run(
            summary,
            "reports",
            lambda: self.store.delete(Collection.REPORTS, lambda r: r.video.id in ids),
        )
        self._delete_primary(
            summary,
            Collection.CONTENT_ITEMS.value,
            lambda: self.store.delete(Collection.CONTENT_ITEMS, lambda c: c.id == content_id),
        )
        return self._finish(summary, (Topic.CONTENT_CHANGED, Topic.PLAYLISTS_CHANGED))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def delete_identity(self, email: str, name: str | None = None) -> CascadeSummary:
        """Erase an identity and every record that refers to it.

        Ownership is decided by e-mail.  *name* is only used for legacy
        content items and campaigns that were stored without an owner e-mail.

        Raises:
            PartialCascadeFailure: A step failed; the identity record and
                their content items were kept.
        """
        summary = CascadeSummary("delete_identity", email)

        owned_ids = frozenset(
            item.id
            for item in self.store.get(Collection.CONTENT_ITEMS)
            if item.is_owned_by(email, name)
        )
        logger.info(
            "cascade_identity_start",
            extra={"email": email, "owned_content_items": len(owned_ids)},
        )

        self._run(
            summary,
            "reports",
            lambda: self.store.delete(
                Collection.REPORTS,
                lambda r: r.reporter_email == email or r.video.id in owned_ids,
            ),
        )
        self._run(
            summary,
            "ad_campaigns",
            lambda: self.store.delete(
                Collection.AD_CAMPAIGNS, lambda c: c.is_owned_by(email, name)
            ),
        )

        for collection in _PERSONAL_LISTS:
            self._run(
                summary,
                f"{collection.value}:{email}",
                lambda collection=collection: self._drop_owned_slot(collection, email),
            )
        if owned_ids:
            self._purge_snapshot_lists(summary, owned_ids)

        self._run(
            summary,
            "playlists",
            lambda: self._purge_playlists(owned_ids, owner_email=email),
        )
        self._run(
            summary,
            f"{Collection.CREDIT_LEDGER.value}:{email}",
            lambda: int(self.ledger.delete(email)),
        )

        try:
            owned_communities = {
                c.id: c.name
                for c in self.store.get(Collection.COMMUNITIES)
                if c.owner_email == email
            }
        except StorageError as exc:
            self._record_failure(summary, Collection.COMMUNITIES.value, exc)
            owned_communities = {}
        if owned_communities:
            self._cascade_communities(summary, owned_communities)

        self._run(
            summary,
            Collection.PROFILE_DETAILS.value,
            lambda: int(self.store.delete_mapping_entry(Collection.PROFILE_DETAILS, email)),
        )
        self._run(
            summary,
            Collection.BLOCKED_IDENTITIES.value,
            lambda: self.store.delete(
                Collection.BLOCKED_IDENTITIES, lambda b: b.email == email
            ),
        )

        # Primary records, only when every dependent step succeeded.
        self._delete_primary(
            summary,
            Collection.CONTENT_ITEMS.value,
            lambda: self.store.delete(Collection.CONTENT_ITEMS, lambda c: c.id in owned_ids),
        )
        self._delete_primary(
            summary,
            Collection.ALL_IDENTITIES.value,
            lambda: self.store.delete(Collection.ALL_IDENTITIES, lambda i: i.email == email),
        )
        if summary.primary_deleted:
            self._run(
                summary,
                Collection.ACTIVE_IDENTITY.value,
                lambda: self._clear_active_identity(email),
            )

        return self._finish(
            summary,
            (Topic.CONTENT_CHANGED, Topic.SUBSCRIPTIONS_CHANGED, Topic.PLAYLISTS_CHANGED),
        )

    # ------------------------------------------------------------------
    # Community
    # ------------------------------------------------------------------

    def delete_community(self, community_id: str) -> CascadeSummary:
        """Delete a community after removing it from every subscription list.

        Content items published into the community keep its name as a
        display label.

        Raises:
            PartialCascadeFailure: A step failed; the community was kept.
        """
        summary = CascadeSummary("delete_community", community_id)
        community = self.store.find(Collection.COMMUNITIES, community_id)
        if community is None:
            logger.info("cascade_community_noop", extra={"community_id": community_id})
            return summary
        self._cascade_communities(summary, {community.id: community.name})
        summary.primary_deleted = not summary.failures
        return self._finish(summary, (Topic.SUBSCRIPTIONS_CHANGED,))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _purge_snapshot_lists(self, summary: CascadeSummary, ids: frozenset[str]) -> None:
        for collection in SNAPSHOT_LISTS:
            try:
                owners = self.store.owners(collection)
            except StorageError as exc:
                self._record_failure(summary, collection.value, exc)
                continue
            for owner in owners:
                self._run(
                    summary,
                    f"{collection.value}:{owner}",
                    lambda collection=collection, owner=owner: self.store.delete(
                        collection, lambda v: v.id in ids, owner=owner
                    ),
                )

    def _purge_playlists(self, ids: frozenset[str], owner_email: str | None = None) -> int:
        """Drop snapshots of *ids* from every playlist.

        When *owner_email* is given, that identity's playlists are removed
        outright.  The collection is written once, and only if it changed.
        """
        playlists = self.store.get(Collection.PLAYLISTS)
        kept = []
        removed = 0
        for playlist in playlists:
            if owner_email is not None and playlist.owner_email == owner_email:
                removed += 1
                continue
            videos = [v for v in playlist.videos if v.id not in ids]
            if len(videos) != len(playlist.videos):
                removed += len(playlist.videos) - len(videos)
                playlist = playlist.model_copy(update={"videos": videos})
            kept.append(playlist)
        if removed:
            self.store.replace(Collection.PLAYLISTS, kept)
        return removed

    def _cascade_communities(self, summary: CascadeSummary, communities: dict[str, str]) -> None:
        names = frozenset(communities.values())
        failures_before = len(summary.failures)
        try:
            owners = self.store.owners(Collection.SUBSCRIPTIONS)
        except StorageError as exc:
            self._record_failure(summary, Collection.SUBSCRIPTIONS.value, exc)
            owners = []
        for owner in owners:
            self._run(
                summary,
                f"{Collection.SUBSCRIPTIONS.value}:{owner}",
                lambda owner=owner: self.store.delete(
                    Collection.SUBSCRIPTIONS, lambda n: n in names, owner=owner
                ),
            )
        if len(summary.failures) > failures_before:
            logger.warning(
                "cascade_community_kept",
                extra={"communities": sorted(names), "reason": "subscription purge failed"},
            )
            return
        ids = frozenset(communities)
        self._run(
            summary,
            Collection.COMMUNITIES.value,
            lambda: self.store.delete(Collection.COMMUNITIES, lambda c: c.id in ids),
        )

    def _drop_owned_slot(self, collection: Collection, email: str) -> int:
        count = len(self.store.get(collection, owner=email))
        self.store.drop(collection, owner=email)
        return count

    def _clear_active_identity(self, email: str) -> int:
        active = self.store.get_single(Collection.ACTIVE_IDENTITY)
        if active is None or active.email != email:
            return 0
        self.store.clear_single(Collection.ACTIVE_IDENTITY)
        return 1

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _run(self, summary: CascadeSummary, step: str, action: Callable[[], int]) -> None:
        try:
            removed = action()
        except StorageError as exc:
            self._record_failure(summary, step, exc)
            return
        summary.removed[step] = summary.removed.get(step, 0) + removed
        if removed:
            logger.info(
                "cascade_step",
                extra={"operation": summary.operation, "step": step, "removed": removed},
            )

    def _delete_primary(self, summary: CascadeSummary, step: str, action: Callable[[], int]) -> None:
        if summary.failures:
            logger.warning(
                "cascade_primary_kept",
                extra={
                    "operation": summary.operation,
                    "target": summary.target,
                    "step": step,
                    "failed_steps": [f.step for f in summary.failures],
                },
            )
            return
        failures_before = len(summary.failures)
        self._run(summary, step, action)
        summary.primary_deleted = len(summary.failures) == failures_before

    def _record_failure(self, summary: CascadeSummary, step: str, exc: Exception) -> None:
        summary.failures.append(CascadeStepFailure(step=step, error=str(exc)))
        logger.error(
            "cascade_step_failed",
            extra={"operation": summary.operation, "step": step, "error": str(exc)},
        )

    def _finish(self, summary: CascadeSummary, topics: tuple[Topic, ...]) -> CascadeSummary:
        logger.info(
            "cascade_complete",
            extra={
                "operation": summary.operation,
                "target": summary.target,
                "removed": summary.total_removed,
                "primary_deleted": summary.primary_deleted,
                "failed_steps": len(summary.failures),
            },
        )
        self.bus.publish_many(topics)
        if summary.failures:
            raise PartialCascadeFailure(
                summary.operation,
                list(summary.failures),
                primary_deleted=summary.primary_deleted,
            )
        return summary
