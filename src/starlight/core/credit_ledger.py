"""Per-identity promotion credit counters.

Premium identities get a fixed grant of free promotion credits per ad type
(skippable and unskippable, 5 each by default).  Promoting a content item
with a free credit spends one from the matching counter.

Lifecycle
---------
  1. ensure():           lazily create the entry with the starting grant;
                         never touches an existing entry.
  2. decrement():        spend one credit; refuses at zero.
  3. grant_on_upgrade(): reset both counters to the grant when an identity
                         becomes premium.  This overwrites a partially spent
                         entry.

Each entry lives alone in the ``credit-ledger:{email}`` slot and every write
is persisted before the method returns.
"""

from __future__ import annotations

import logging

from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.exceptions import InsufficientCreditError
from starlight.core.schemas import CreditKind, LedgerEntry

logger = logging.getLogger(__name__)

DEFAULT_STARTING_GRANT = 5


class CreditLedger:
    """Reads and mutates ledger entries.

    Args:
        store: The collection store.
        starting_grant: Credits per counter for a fresh or upgraded entry.
    """

    def __init__(self, store: CollectionStore, starting_grant: int = DEFAULT_STARTING_GRANT) -> None:
        self.store = store
        self.starting_grant = starting_grant

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, email: str) -> LedgerEntry | None:
        """Return the stored entry, or ``None`` if none exists yet."""
        return self.store.get_single(Collection.CREDIT_LEDGER, owner=email)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def ensure(self, email: str) -> LedgerEntry:
        """Return the existing entry or create one with the starting grant.

        Idempotent: repeated calls return equal entries and never alter an
        existing one.
        """
        entry = self.get(email)
        if entry is not None:
            return entry
        entry = self._fresh(email)
        self._save(entry)
        logger.info(
            "credit_ledger: created entry",
            extra={"owner_email": email, "grant": self.starting_grant},
        )
        return entry

    def decrement(self, email: str, kind: CreditKind | str) -> LedgerEntry:
        """Spend one credit of *kind*.

        The entry is created first if it does not exist.

        Raises:
            InsufficientCreditError: The counter is already zero.  The entry
                is left unchanged.
        """
        kind = CreditKind(kind)
        entry = self.ensure(email)
        available = entry.remaining(kind)
        if available <= 0:
            logger.info(
                "credit_ledger: refused spend",
                extra={"owner_email": email, "kind": kind.value},
            )
            raise InsufficientCreditError(email=email, kind=kind.value, available=available)

        entry = entry.model_copy(update={kind.value: available - 1})
        self._save(entry)
        logger.info(
            "credit_ledger: spent credit",
            extra={"owner_email": email, "kind": kind.value, "remaining": available - 1},
        )
        return entry

    def grant_on_upgrade(self, email: str) -> LedgerEntry:
        """Reset both counters to the starting grant, whatever they were."""
        previous = self.get(email)
        entry = self._fresh(email)
        self._save(entry)
        logger.info(
            "credit_ledger: granted on upgrade",
            extra={
                "owner_email": email,
                "grant": self.starting_grant,
                "overwrote_spent": previous is not None and previous != entry,
            },
        )
        return entry

    def delete(self, email: str) -> bool:
        """Remove the entry (idempotent).  Returns whether one existed."""
        existed = self.get(email) is not None
        self.store.clear_single(Collection.CREDIT_LEDGER, owner=email)
        return existed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fresh(self, email: str) -> LedgerEntry:
        return LedgerEntry(
            owner_email=email,
            skippable=self.starting_grant,
            unskippable=self.starting_grant,
        )

    def _save(self, entry: LedgerEntry) -> None:
        self.store.put_single(Collection.CREDIT_LEDGER, entry, owner=entry.owner_email)
