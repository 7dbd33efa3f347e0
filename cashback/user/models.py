"""User domain models.

SQLModel table definition for User, including the embedded wallet.
"""

import uuid
from decimal import Decimal
from enum import Enum

from pydantic import EmailStr
from sqlalchemy import CheckConstraint, Column, Numeric
from sqlmodel import Field, SQLModel

from cashback.core.mixins import TimestampMixin

MONEY = Numeric(12, 2)


class UserRole(str, Enum):
    user = "user"
    moderator = "moderator"
    admin = "admin"


class User(TimestampMixin, SQLModel, table=True):
    """User database model.

    Note: external_id is internal-only (identity provider UID) and should
    never be exposed in API responses.

    Wallet: withdrawn cashback is not stored; it is
    total - available - pending. available_cashback is only changed
    through the conditional updates in cashback.wallet.balance.
    """

    __tablename__: str = "users"
    __table_args__ = (
        CheckConstraint("total_cashback >= 0", name="ck_users_total_cashback"),
        CheckConstraint("available_cashback >= 0", name="ck_users_available_cashback"),
        CheckConstraint("pending_cashback >= 0", name="ck_users_pending_cashback"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    external_id: str = Field(index=True, unique=True)
    email: EmailStr = Field(index=True, unique=True, max_length=255)
    name: str = Field(max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    referral_code: str = Field(index=True, unique=True, max_length=8)
    referred_by: uuid.UUID | None = Field(
        default=None, foreign_key="users.id", index=True
    )
    role: UserRole = Field(default=UserRole.user, max_length=20)
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)

    total_cashback: Decimal = Field(
        default=Decimal("0"), sa_column=Column(MONEY, nullable=False, default=0)
    )
    available_cashback: Decimal = Field(
        default=Decimal("0"), sa_column=Column(MONEY, nullable=False, default=0)
    )
    pending_cashback: Decimal = Field(
        default=Decimal("0"), sa_column=Column(MONEY, nullable=False, default=0)
    )

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.admin, UserRole.moderator)

    @property
    def withdrawn_cashback(self) -> Decimal:
        return self.total_cashback - self.available_cashback - self.pending_cashback
