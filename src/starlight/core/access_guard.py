"""Administrator block list, evaluated when an identity logs in.

The guard is consulted once per identity assertion and never mid-session.
Evaluating a temporary block that has already lapsed deletes the block
entry before the decision is returned, so a lapsed block never needs a
separate cleanup pass.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from starlight.core.collection_store import Collection, CollectionStore
from starlight.core.exceptions import PermanentlyBlockedError, TemporarilyBlockedError
from starlight.core.schemas import BlockEntry, BlockType, utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Verdict(str, enum.Enum):
    ALLOW = "allow"
    DENY_PERMANENT = "deny_permanent"
    DENY_TEMPORARY = "deny_temporary"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of :meth:`AccessGuard.evaluate`.

    ``until`` is set exactly when the verdict is :attr:`Verdict.DENY_TEMPORARY`.

    Raises:
        ValueError: ``until`` does not match the verdict.
    """

    verdict: Verdict
    until: datetime | None = None

    def __post_init__(self) -> None:
        if (self.verdict is Verdict.DENY_TEMPORARY) != (self.until is not None):
            raise ValueError(f"{self.verdict.value} decision with until={self.until!r}")

    @property
    def allowed(self) -> bool:
        return self.verdict is Verdict.ALLOW


ALLOW = AccessDecision(Verdict.ALLOW)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class AccessGuard:
    """Evaluates and maintains the ``blocked-identities`` collection.

    Args:
        store: The collection store.
        clock: Returns the current aware datetime; injectable for tests.
        temporary_block_days: Default length of a temporary block.
    """

    def __init__(
        self,
        store: CollectionStore,
        clock: Clock = utcnow,
        temporary_block_days: int = 15,
    ) -> None:
        self.store = store
        self.clock = clock
        self.temporary_block = timedelta(days=temporary_block_days)

    def evaluate(self, email: str) -> AccessDecision:
        """Decide whether *email* may start a session.

        A temporary block whose expiry is not in the future is removed from
        the store and the identity is allowed.  A temporary block without an
        expiry is treated as permanent.
        """
        entry = self.store.find(Collection.BLOCKED_IDENTITIES, email)
        if entry is None:
            return ALLOW

        if entry.block_type is BlockType.PERMANENT or entry.expires_at is None:
            return AccessDecision(Verdict.DENY_PERMANENT)

        until = _aware(entry.expires_at)
        if self.clock() >= until:
            self.store.delete(Collection.BLOCKED_IDENTITIES, lambda b: b.email == email)
            logger.info(
                "access_guard: lifted expired block",
                extra={"email": email, "expired_at": until.isoformat()},
            )
            return ALLOW
        return AccessDecision(Verdict.DENY_TEMPORARY, until=until)

    def check(self, email: str) -> None:
        """Evaluate and raise if the identity must not get a session.

        Raises:
            PermanentlyBlockedError: Permanent block.
            TemporarilyBlockedError: Temporary block still in force.
        """
        decision = self.evaluate(email)
        if decision.verdict is Verdict.DENY_PERMANENT:
            logger.warning("access_guard: refused login (permanent)", extra={"email": email})
            raise PermanentlyBlockedError(email)
        if decision.verdict is Verdict.DENY_TEMPORARY and decision.until is not None:
            logger.warning(
                "access_guard: refused login (temporary)",
                extra={"email": email, "until": decision.until.isoformat()},
            )
            raise TemporarilyBlockedError(email, decision.until)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def block(
        self,
        email: str,
        block_type: BlockType | str,
        *,
        name: str | None = None,
        duration: timedelta | None = None,
    ) -> BlockEntry:
        """Block *email*, replacing any existing block for it."""
        block_type = BlockType(block_type)
        expires_at = None
        if block_type is BlockType.TEMPORARY:
            expires_at = self.clock() + (duration or self.temporary_block)
        entry = BlockEntry(email=email, name=name, block_type=block_type, expires_at=expires_at)
        self.store.put(Collection.BLOCKED_IDENTITIES, entry)
        logger.info(
            "access_guard: blocked identity",
            extra={"email": email, "block_type": block_type.value},
        )
        return entry

    def unblock(self, email: str) -> bool:
        """Remove the block for *email*.  Returns whether one existed."""
        return bool(
            self.store.delete(Collection.BLOCKED_IDENTITIES, lambda b: b.email == email)
        )

    def list_blocks(self) -> list[BlockEntry]:
        return self.store.get(Collection.BLOCKED_IDENTITIES)
