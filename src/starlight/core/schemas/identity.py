"""Identity records and the login assertion produced by the auth provider."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from starlight.core.schemas.base import StoredRecord


class Identity(StoredRecord):
    """A known account.

    ``email`` is the stable foreign key used by every other collection;
    ``name`` is a mutable display label.

    Attributes:
        email: Unique account e-mail.
        name: Display name shown next to uploads and comments.
        avatar: Avatar image reference.
        is_premium: Whether the identity holds a premium membership.
        joined_date: When the identity first logged in.
    """

    email: str
    name: str
    avatar: Optional[str] = None
    is_premium: bool = False
    joined_date: Optional[datetime] = None


class IdentityAssertion(StoredRecord):
    """What the authentication provider hands over at login."""

    name: str = Field(min_length=1)
    email: EmailStr
    avatar: Optional[str] = None
    is_premium: bool = False
