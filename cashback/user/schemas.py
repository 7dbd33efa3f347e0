"""User domain schemas.

Request and response schemas for user operations.

Security notes:
- external_id (identity provider UID) is internal-only, never exposed in responses
- UserUpdateMe is restricted to prevent privilege escalation
"""

import uuid

from pydantic import EmailStr, Field

from cashback.core.schemas import CamelModel, Money, UTCDateTime
from cashback.user.models import UserRole


class UserPublicRead(CamelModel):
    """Response schema for the current user's own profile and wallet."""

    id: uuid.UUID
    email: EmailStr
    name: str
    phone: str | None
    referral_code: str
    role: UserRole
    is_verified: bool
    total_cashback: Money
    available_cashback: Money
    pending_cashback: Money
    created_at: UTCDateTime
    updated_at: UTCDateTime


class UserRead(UserPublicRead):
    """Full response schema for admin contexts."""

    is_active: bool
    referred_by: uuid.UUID | None


class UserUpdateMe(CamelModel):
    """Schema for users updating their own profile.

    Users cannot modify: email, role, is_active, wallet fields.
    """

    name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = Field(default=None, pattern=r"^\+?[0-9]{10,15}$")


class UserUpdate(UserUpdateMe):
    """Schema for admin updating a user.

    Deactivation replaces deletion; users are never hard-deleted.
    """

    role: UserRole | None = None
    is_active: bool | None = None
