"""Community and profile-details records."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from starlight.core.schemas.base import StoredRecord


class Community(StoredRecord):
    """A community that content items are published into.

    ``name`` is unique and is what content items and subscriptions reference.
    """

    id: str
    name: str = Field(min_length=1)
    owner_email: str
    member_count: int = Field(default=0, ge=0)
    avatar: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None


class ProfileDetails(StoredRecord):
    """Optional settings an identity fills in on the settings page.

    Stored in the ``profile-details`` map slot under the owner's e-mail.
    """

    mobile_number: Optional[str] = None
    is_mobile_verified: bool = False
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    native_languages: list[str] = Field(default_factory=list)
    gender: Optional[Literal["male", "female", "prefer_not_to_say"]] = None
