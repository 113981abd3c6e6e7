"""Application-wide exception hierarchy for Starlight.

All custom exceptions subclass ``StarlightError``, enabling consistent error
handling and structured logging across the persistence layer and the API.

Hierarchy::

    StarlightError
    ├── StorageError
    ├── MalformedRecordError
    ├── NotFoundError
    ├── DuplicateRecordError
    ├── PartialCascadeFailure    (failures: list[CascadeStepFailure])
    ├── CreditError
    │   ├── InsufficientCreditError
    │   └── PremiumRequiredError
    ├── BlockedError
    │   ├── PermanentlyBlockedError
    │   └── TemporarilyBlockedError  (until: datetime)
    ├── NotAuthenticatedError
    └── AdminRequiredError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


class StarlightError(Exception):
    """Base class for all Starlight exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Storage exceptions
# ---------------------------------------------------------------------------


class StorageError(StarlightError):
    """Raised when the key-value backend fails to read or write a slot.

    Args:
        message: Human-readable description of the failure.
        slot: Fully qualified slot name that was being accessed.
    """

    def __init__(self, message: str, slot: str | None = None) -> None:
        super().__init__(message)
        self.slot = slot


class MalformedRecordError(StarlightError):
    """Raised (or logged) when a stored blob fails to decode.

    The collection store absorbs this condition and treats the affected
    collection (or entry) as absent; strict codec callers receive it directly.

    Args:
        message: Description of the decode failure.
        slot: Slot the blob was read from, when known.
        raw: The offending text or entry (truncated for logging).
    """

    def __init__(
        self,
        message: str,
        slot: str | None = None,
        raw: object | None = None,
    ) -> None:
        super().__init__(message)
        self.slot = slot
        self.raw = raw


class NotFoundError(StarlightError):
    """Raised when a lookup targets a record that does not exist.

    Deletes never raise this; they are idempotent no-ops.

    Args:
        collection: Collection name that was searched.
        record_id: Identifier that was not found.
    """

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection} record not found: {record_id}")
        self.collection = collection
        self.record_id = record_id


class DuplicateRecordError(StarlightError):
    """Raised when a create would violate a uniqueness constraint.

    Args:
        collection: Collection name.
        key: The duplicated key value (e.g. a community name).
    """

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"{collection} already contains {key!r}")
        self.collection = collection
        self.key = key


# ---------------------------------------------------------------------------
# Cascade exceptions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeStepFailure:
    """One failed step of a multi-collection cascade."""

    step: str
    error: str


class PartialCascadeFailure(StarlightError):
    """Raised when one or more steps of a cascade could not be persisted.

    Every remaining step is still attempted before this is raised, and the
    primary record is kept whenever any dependent step failed.

    Args:
        operation: Name of the cascade (e.g. ``"delete_identity"``).
        failures: The failed steps, in execution order.
        primary_deleted: Whether the primary record was removed.
    """

    def __init__(
        self,
        operation: str,
        failures: list[CascadeStepFailure],
        primary_deleted: bool = False,
    ) -> None:
        steps = ", ".join(f.step for f in failures)
        super().__init__(f"{operation}: {len(failures)} cascade step(s) failed: {steps}")
        self.operation = operation
        self.failures = failures
        self.primary_deleted = primary_deleted


# ---------------------------------------------------------------------------
# Credit exceptions
# ---------------------------------------------------------------------------


class CreditError(StarlightError):
    """Base class for credit-ledger errors."""


class InsufficientCreditError(CreditError):
    """Raised when a decrement would take a ledger counter below zero.

    Args:
        email: Owner of the ledger entry.
        kind: Counter that was exhausted (``"skippable"`` / ``"unskippable"``).
        available: Value of the counter at the time of the request.
    """

    def __init__(self, email: str, kind: str, available: int = 0) -> None:
        super().__init__(
            f"Insufficient {kind} credits for {email}: available {available}"
        )
        self.email = email
        self.kind = kind
        self.available = available


class PremiumRequiredError(CreditError):
    """Raised when a non-premium identity tries to spend a free credit."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Premium membership required for {email}")
        self.email = email


# ---------------------------------------------------------------------------
# Access exceptions
# ---------------------------------------------------------------------------


class BlockedError(StarlightError):
    """Base class for login refusals raised by the access guard.

    Args:
        email: The identity that was refused.
    """

    def __init__(self, message: str, email: str) -> None:
        super().__init__(message)
        self.email = email


class PermanentlyBlockedError(BlockedError):
    """Raised when an identity is permanently blocked by an administrator."""

    def __init__(self, email: str) -> None:
        super().__init__(
            "This account has been permanently blocked by an administrator.",
            email=email,
        )


class TemporarilyBlockedError(BlockedError):
    """Raised when an identity is blocked until a point in the future.

    Args:
        email: The identity that was refused.
        until: UTC datetime at which the block lapses.
    """

    def __init__(self, email: str, until: datetime) -> None:
        super().__init__(
            f"This account has been temporarily blocked until {until.isoformat()}.",
            email=email,
        )
        self.until = until


class NotAuthenticatedError(StarlightError):
    """Raised when an operation requires an active session and none exists."""


class AdminRequiredError(StarlightError):
    """Raised when a non-admin session attempts an administrative operation."""
