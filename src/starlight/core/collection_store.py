"""Typed get/put/delete over the named record collections.

The store is the only component that touches the key-value backend.  Every
mutation is a whole-collection read-modify-write: read the slot, transform
the decoded list, write the encoded list back.  Writes go straight to the
backend, so a mutation is durable when the call returns.  There is no
multi-collection atomicity; ordering across collections is the consistency
engine's job.

Slots
-----
Most collections live in one slot (``content-items``).  Personal lists and
ledger entries are *owner-scoped*: one slot per identity, named
``{collection}:{email}`` (``history:ann@example.com``), so that several
identities can share a device without seeing each other's lists.

Failure policy
--------------
- A blob that fails to decode reads as an empty collection (or entries are
  dropped individually); the codec logs each loss at WARNING.
- Deleting an id that is not present is a no-op and writes nothing.
- Backend failures surface as :class:`~starlight.core.exceptions.StorageError`.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterable

from starlight.core import codec
from starlight.core.backends import KeyValueBackend
from starlight.core.exceptions import MalformedRecordError, NotFoundError
from starlight.core.schemas import (
    AdCampaign,
    BlockEntry,
    Community,
    ContentItem,
    Identity,
    LedgerEntry,
    Playlist,
    ProfileDetails,
    Report,
)

logger = logging.getLogger(__name__)


class Collection(str, enum.Enum):
    """Named slots of the persisted state."""

    ACTIVE_IDENTITY = "active-identity"
    ALL_IDENTITIES = "all-identities"
    CONTENT_ITEMS = "content-items"
    COMMUNITIES = "communities"
    SUBSCRIPTIONS = "subscriptions"
    PLAYLISTS = "playlists"
    HISTORY = "history"
    LIKED = "liked"
    WATCH_LATER = "watch-later"
    REPORTS = "reports"
    AD_CAMPAIGNS = "user-ad-campaigns"
    CREDIT_LEDGER = "credit-ledger"
    BLOCKED_IDENTITIES = "blocked-identities"
    PROFILE_DETAILS = "profile-details"


RECORD_TYPES: dict[Collection, Any] = {
    Collection.ACTIVE_IDENTITY: Identity,
    Collection.ALL_IDENTITIES: Identity,
    Collection.CONTENT_ITEMS: ContentItem,
    Collection.COMMUNITIES: Community,
    Collection.SUBSCRIPTIONS: str,
    Collection.PLAYLISTS: Playlist,
    Collection.HISTORY: ContentItem,
    Collection.LIKED: ContentItem,
    Collection.WATCH_LATER: ContentItem,
    Collection.REPORTS: Report,
    Collection.AD_CAMPAIGNS: AdCampaign,
    Collection.CREDIT_LEDGER: LedgerEntry,
    Collection.BLOCKED_IDENTITIES: BlockEntry,
    Collection.PROFILE_DETAILS: ProfileDetails,
}
"""Record type stored in each collection (``str`` for name lists)."""

OWNER_SCOPED: frozenset[Collection] = frozenset({
    Collection.SUBSCRIPTIONS,
    Collection.HISTORY,
    Collection.LIKED,
    Collection.WATCH_LATER,
    Collection.CREDIT_LEDGER,
})

SNAPSHOT_LISTS: tuple[Collection, ...] = (
    Collection.HISTORY,
    Collection.LIKED,
    Collection.WATCH_LATER,
)
"""Owner-scoped lists of content snapshots."""

_KEY_FIELDS: dict[Collection, str | None] = {
    Collection.ALL_IDENTITIES: "email",
    Collection.BLOCKED_IDENTITIES: "email",
    Collection.SUBSCRIPTIONS: None,
}


def record_key(collection: Collection, record: Any) -> str:
    """Return the identity key of *record* within *collection*."""
    field = _KEY_FIELDS.get(collection, "id")
    return record if field is None else getattr(record, field)


class CollectionStore:
    """Typed access to the persisted collections.

    Args:
        backend: The host key-value store.
        key_prefix: Prepended to every slot name before it reaches the
            backend (``Settings.key_prefix``).
    """

    def __init__(self, backend: KeyValueBackend, key_prefix: str = "") -> None:
        self.backend = backend
        self.key_prefix = key_prefix

    # ------------------------------------------------------------------
    # Slot naming
    # ------------------------------------------------------------------

    def slot_name(self, collection: Collection, owner: str | None = None) -> str:
        """Return the backend key for *collection* (and *owner* if scoped)."""
        if collection in OWNER_SCOPED:
            if not owner:
                raise ValueError(f"{collection.value} is owner-scoped; owner is required")
            return f"{self.key_prefix}{collection.value}:{owner}"
        if owner is not None:
            raise ValueError(f"{collection.value} is not owner-scoped")
        return f"{self.key_prefix}{collection.value}"

    def owners(self, collection: Collection) -> list[str]:
        """Return the owners that currently have a slot for *collection*."""
        if collection not in OWNER_SCOPED:
            raise ValueError(f"{collection.value} is not owner-scoped")
        prefix = f"{self.key_prefix}{collection.value}:"
        return [key[len(prefix):] for key in self.backend.keys(prefix)]

    # ------------------------------------------------------------------
    # Sequence collections
    # ------------------------------------------------------------------

    def get(self, collection: Collection, *, owner: str | None = None) -> list[Any]:
        """Return every decodable record of *collection*, in stored order."""
        slot = self.slot_name(collection, owner)
        result = codec.decode_collection(
            RECORD_TYPES[collection], self.backend.get(slot), slot=slot
        )
        return result.records

    def find(
        self,
        collection: Collection,
        key: str,
        *,
        owner: str | None = None,
    ) -> Any | None:
        """Return the record whose key equals *key*, or ``None``."""
        for record in self.get(collection, owner=owner):
            if record_key(collection, record) == key:
                return record
        return None

    def put(
        self,
        collection: Collection,
        record: Any,
        *,
        owner: str | None = None,
        prepend: bool = False,
    ) -> None:
        """Insert or replace *record*.

        A record with the same key is replaced in place; otherwise the record
        is appended (or prepended when *prepend* is true).
        """
        records = self.get(collection, owner=owner)
        key = record_key(collection, record)
        for index, existing in enumerate(records):
            if record_key(collection, existing) == key:
                records[index] = record
                break
        else:
            if prepend:
                records.insert(0, record)
            else:
                records.append(record)
        self._write(collection, records, owner)

    def delete(
        self,
        collection: Collection,
        predicate: Callable[[Any], bool],
        *,
        owner: str | None = None,
    ) -> int:
        """Remove every record matching *predicate*.

        Returns:
            Number of records removed.  Nothing is written when it is 0.
        """
        records = self.get(collection, owner=owner)
        kept = [r for r in records if not predicate(r)]
        removed = len(records) - len(kept)
        if removed:
            self._write(collection, kept, owner)
        return removed

    def replace(
        self,
        collection: Collection,
        records: Iterable[Any],
        *,
        owner: str | None = None,
    ) -> None:
        """Overwrite the whole collection."""
        self._write(collection, list(records), owner)

    def update(
        self,
        collection: Collection,
        key: str,
        change: Callable[[Any], Any],
        *,
        owner: str | None = None,
    ) -> Any:
        """Apply *change* to one record and persist the result.

        Raises:
            NotFoundError: No record has that key.
        """
        records = self.get(collection, owner=owner)
        for index, existing in enumerate(records):
            if record_key(collection, existing) == key:
                records[index] = change(existing)
                self._write(collection, records, owner)
                return records[index]
        raise NotFoundError(collection.value, key)

    def drop(self, collection: Collection, *, owner: str | None = None) -> None:
        """Remove the slot entirely."""
        self.backend.delete(self.slot_name(collection, owner))

    def _write(self, collection: Collection, records: list[Any], owner: str | None) -> None:
        slot = self.slot_name(collection, owner)
        self.backend.set(slot, codec.encode_collection(records))
        logger.debug(
            "collection_store: wrote slot",
            extra={"slot": slot, "records": len(records)},
        )

    # ------------------------------------------------------------------
    # Single-record slots
    # ------------------------------------------------------------------

    def get_single(self, collection: Collection, *, owner: str | None = None) -> Any | None:
        """Return the record held by a single-record slot, or ``None``.

        A corrupt blob is logged and read as absent.
        """
        slot = self.slot_name(collection, owner)
        text = self.backend.get(slot)
        if text is None:
            return None
        try:
            return codec.decode_record(RECORD_TYPES[collection], text, slot=slot)
        except MalformedRecordError as exc:
            logger.warning(
                "collection_store: unreadable single-record slot",
                extra={"slot": slot, "reason": str(exc)},
            )
            return None

    def put_single(self, collection: Collection, record: Any, *, owner: str | None = None) -> None:
        self.backend.set(self.slot_name(collection, owner), codec.encode_record(record))

    def clear_single(self, collection: Collection, *, owner: str | None = None) -> None:
        self.drop(collection, owner=owner)

    # ------------------------------------------------------------------
    # Map slots
    # ------------------------------------------------------------------

    def get_mapping(self, collection: Collection) -> dict[str, Any]:
        """Return a map slot as a dict, dropping undecodable entries."""
        slot = self.slot_name(collection)
        result = codec.decode_mapping(
            RECORD_TYPES[collection], self.backend.get(slot), slot=slot
        )
        return dict(result.records)

    def put_mapping_entry(self, collection: Collection, key: str, record: Any) -> None:
        mapping = self.get_mapping(collection)
        mapping[key] = record
        self.backend.set(self.slot_name(collection), codec.encode_mapping(mapping))

    def delete_mapping_entry(self, collection: Collection, key: str) -> bool:
        """Remove one key from a map slot.  Returns whether it was present."""
        mapping = self.get_mapping(collection)
        if mapping.pop(key, None) is None:
            return False
        self.backend.set(self.slot_name(collection), codec.encode_mapping(mapping))
        return True
